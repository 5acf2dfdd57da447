"""Core turn runner for LLM + tool iteration."""

from __future__ import annotations

import json
from typing import Any, Protocol

from relaybot.logging import get_logger
from relaybot.providers.base import LLMResponse

logger = get_logger(__name__)

TOOL_LOOP_LIMIT_TEXT = "Tool loop limit reached without a final answer."
NO_CONTENT_TEXT = "(no content)"


class ChatProvider(Protocol):
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        tool_choice: str | None = None,
    ) -> LLMResponse: ...


class ToolExecutor(Protocol):
    def get_definitions(self) -> list[dict[str, Any]]: ...
    async def execute(self, name: str, params: dict[str, Any]) -> str: ...


class TurnRunner:
    """
    Run a single exchange including iterative tool calls.

    Each round makes one completion call. Tool calls from a round are executed
    one after another in the order the model listed them, since they may write
    the same memory record. After ``max_rounds`` rounds without a plain answer
    the fixed ``TOOL_LOOP_LIMIT_TEXT`` is returned.
    """

    def __init__(
        self,
        *,
        provider: ChatProvider,
        tools: ToolExecutor,
        model: str | None = None,
        max_rounds: int = 4,
    ) -> None:
        self.provider = provider
        self.tools = tools
        self.model = model
        self.max_rounds = max_rounds

    @staticmethod
    def _assistant_tool_message(response: LLMResponse) -> dict[str, Any]:
        return {
            "role": "assistant",
            "content": response.content,
            "tool_calls": [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments, ensure_ascii=False),
                    },
                }
                for tc in response.tool_calls
            ],
        }

    async def run(
        self,
        initial_messages: list[dict[str, Any]],
    ) -> tuple[str, list[str], list[dict[str, Any]]]:
        """Run the tool loop. Returns (final_content, tools_used, messages)."""
        messages = list(initial_messages)
        tools_used: list[str] = []
        definitions = self.tools.get_definitions()

        for round_no in range(1, self.max_rounds + 1):
            response = await self.provider.chat(
                messages=messages,
                tools=definitions,
                model=self.model,
                tool_choice="auto",
            )
            logger.debug(
                "completion_round",
                round=round_no,
                finish_reason=response.finish_reason,
                total_tokens=response.usage.get("total_tokens", 0),
            )

            if not response.has_tool_calls:
                final_content = (response.content or "").strip() or NO_CONTENT_TEXT
                messages.append({"role": "assistant", "content": final_content})
                logger.debug("turn_completed", rounds=round_no, tool_count=len(tools_used))
                return final_content, tools_used, messages

            messages.append(self._assistant_tool_message(response))
            for tool_call in response.tool_calls:
                tools_used.append(tool_call.name)
                args_str = json.dumps(tool_call.arguments, ensure_ascii=False)
                logger.info("tool_call", tool=tool_call.name, round=round_no, args=args_str[:200])
                result = await self.tools.execute(tool_call.name, tool_call.arguments)
                messages.append({
                    "role": "tool",
                    "tool_call_id": tool_call.id,
                    "name": tool_call.name,
                    "content": result,
                })

        logger.warning("tool_loop_limit_reached", max_rounds=self.max_rounds, tool_count=len(tools_used))
        return TOOL_LOOP_LIMIT_TEXT, tools_used, messages
