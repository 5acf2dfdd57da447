"""LiteLLM provider implementation routed through OpenRouter."""

import json
import logging
from typing import Any

import litellm
from litellm import acompletion

from relaybot.errors import CompletionError
from relaybot.logging import get_logger, mask_secret
from relaybot.providers.base import LLMProvider, LLMResponse, ToolCallRequest

logger = get_logger("relaybot.providers.litellm")

_GATEWAY_PREFIX = "openrouter"

# Standard OpenAI chat-completion message keys; anything else is stripped before sending.
_ALLOWED_MSG_KEYS = frozenset({"role", "content", "tool_calls", "tool_call_id", "name"})


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM against the OpenRouter gateway.

    Model ids are given in OpenRouter form (``anthropic/claude-sonnet-4.5``);
    the ``openrouter/`` routing prefix is added when missing.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "anthropic/claude-sonnet-4.5",
        extra_headers: dict[str, str] | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.extra_headers = {k: v for k, v in (extra_headers or {}).items() if v}

        if api_key:
            logger.info("provider_initialized", model=default_model, api_key=mask_secret(api_key))

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers
        litellm.drop_params = True

    @staticmethod
    def _resolve_model(model: str) -> str:
        """Apply the gateway routing prefix."""
        if model.startswith(f"{_GATEWAY_PREFIX}/"):
            return model
        return f"{_GATEWAY_PREFIX}/{model}"

    @staticmethod
    def _sanitize_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Strip non-standard keys and ensure assistant messages have a content key."""
        sanitized = []
        for msg in messages:
            clean = {k: v for k, v in msg.items() if k in _ALLOWED_MSG_KEYS}
            # Strict providers require "content" even when assistant only has tool_calls
            if clean.get("role") == "assistant" and "content" not in clean:
                clean["content"] = None
            # Ensure tool_calls arguments are JSON strings, not dicts
            if "tool_calls" in clean and clean["tool_calls"]:
                fixed_calls = []
                for tc in clean["tool_calls"]:
                    tc = dict(tc)  # shallow copy
                    if "function" in tc:
                        fn = dict(tc["function"])
                        if isinstance(fn.get("arguments"), dict):
                            fn["arguments"] = json.dumps(fn["arguments"], ensure_ascii=False)
                        tc["function"] = fn
                    fixed_calls.append(tc)
                clean["tool_calls"] = fixed_calls
            sanitized.append(clean)
        return sanitized

    @staticmethod
    def _value(obj: Any, key: str, default: Any = None) -> Any:
        if isinstance(obj, dict):
            return obj.get(key, default)
        return getattr(obj, key, default)

    @classmethod
    def _parse_arguments(cls, args_raw: Any) -> dict[str, Any]:
        """Decode tool-call arguments strictly; malformed JSON or a non-object becomes {}."""
        if isinstance(args_raw, dict):
            return args_raw
        if not isinstance(args_raw, str) or not args_raw.strip():
            return {}
        try:
            arguments = json.loads(args_raw)
        except json.JSONDecodeError:
            logger.warning("tool_arguments_malformed", raw=args_raw[:200])
            return {}
        return arguments if isinstance(arguments, dict) else {}

    @classmethod
    def _extract_tool_calls_from_message(cls, message: Any) -> list[ToolCallRequest]:
        tool_calls: list[ToolCallRequest] = []
        raw_tool_calls = cls._value(message, "tool_calls") or []
        for idx, tc in enumerate(raw_tool_calls):
            fn = cls._value(tc, "function") or {}
            name = cls._value(fn, "name")
            if not isinstance(name, str) or not name:
                continue
            call_id = cls._value(tc, "id") or f"call_{idx}"
            tool_calls.append(ToolCallRequest(
                id=str(call_id),
                name=name,
                arguments=cls._parse_arguments(cls._value(fn, "arguments")),
            ))
        return tool_calls

    def _upstream_error(self, error: Exception) -> CompletionError:
        """Convert a LiteLLM exception into CompletionError with status and masked body."""
        status_code = getattr(error, "status_code", None)
        body = str(getattr(error, "message", None) or error)
        if self.api_key and self.api_key in body:
            body = body.replace(self.api_key, mask_secret(self.api_key))
        return CompletionError.from_upstream(status_code if isinstance(status_code, int) else None, body)

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        tool_choice: str | None = None,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            tools: Optional list of tool definitions in OpenAI format.
            model: Model identifier (e.g., 'anthropic/claude-sonnet-4.5').
            tool_choice: Tool choice policy, sent only when tools are given.

        Returns:
            LLMResponse with content and/or tool calls.

        Raises:
            CompletionError: on any upstream failure or an empty choice list.
        """
        model = self._resolve_model(model or self.default_model)

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": self._sanitize_messages(messages),
            "stream": False,
        }

        # api_key is passed per call; no provider env vars are read
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers

        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = tool_choice or "auto"

        if logging.getLogger("relaybot").isEnabledFor(logging.DEBUG):
            logger.debug(
                "litellm_request",
                model=model,
                message_count=len(kwargs["messages"]),
                tool_count=len(tools or []),
            )

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            error = self._upstream_error(e)
            logger.error("llm_call_failed", model=model, status_code=error.status_code, error=str(error))
            raise error from e

        return self._parse_response(response)

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        choices = self._value(response, "choices") or []
        if not choices:
            raise CompletionError("No choice from model")
        choice = choices[0]
        message = self._value(choice, "message")
        if message is None:
            raise CompletionError("No choice from model")

        usage = {}
        raw_usage = self._value(response, "usage")
        if raw_usage:
            usage = {
                "prompt_tokens": int(self._value(raw_usage, "prompt_tokens", 0) or 0),
                "completion_tokens": int(self._value(raw_usage, "completion_tokens", 0) or 0),
                "total_tokens": int(self._value(raw_usage, "total_tokens", 0) or 0),
            }

        content = self._value(message, "content")
        return LLMResponse(
            content=content if isinstance(content, str) else None,
            tool_calls=self._extract_tool_calls_from_message(message),
            finish_reason=self._value(choice, "finish_reason") or "stop",
            usage=usage,
        )
