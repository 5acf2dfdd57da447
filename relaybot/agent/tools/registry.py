"""Tool registry for dispatching model-issued tool calls."""

import time
from typing import Any

from relaybot.agent.tools.base import Tool, ToolExecutionResult
from relaybot.logging import get_logger

audit_log = get_logger("relaybot.audit")


class ToolRegistry:
    """
    Registry for agent tools.

    Unknown names and missing arguments come back as error text so the model
    can correct itself; exceptions raised while a tool runs propagate.
    """

    _TRUNCATE_KEYS = {"memory"}

    def __init__(self, audit: bool = True):
        self._tools: dict[str, Tool] = {}
        self._audit = audit

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def get_definitions(self) -> list[dict[str, Any]]:
        """Get all tool definitions in OpenAI format."""
        return [tool.to_schema() for tool in self._tools.values()]

    def _sanitize_params(self, params: dict) -> dict:
        """Truncate long values for audit logging."""
        sanitized = {}
        for k, v in params.items():
            if k in self._TRUNCATE_KEYS and isinstance(v, str) and len(v) > 200:
                sanitized[k] = v[:200] + "..."
            else:
                sanitized[k] = v
        return sanitized

    @staticmethod
    def _ensure_result(result: str | ToolExecutionResult) -> ToolExecutionResult:
        if isinstance(result, ToolExecutionResult):
            return result
        return ToolExecutionResult(text=str(result))

    async def execute_result(self, name: str, params: dict[str, Any]) -> ToolExecutionResult:
        """Execute a tool and return a structured result."""
        tool = self._tools.get(name)
        if not tool:
            if self._audit:
                audit_log.warning("tool_call_rejected", tool=name, reason="unknown_tool")
            return ToolExecutionResult(
                text=f"ERROR: unknown tool '{name}'. Available: {', '.join(self.tool_names)}",
                is_error=True,
            )

        missing = tool.missing_params(params)
        if missing:
            if self._audit:
                audit_log.warning("tool_call_rejected", tool=name, reason="missing_params", missing=missing)
            return ToolExecutionResult(
                text=f"ERROR: missing {' or '.join(missing)}",
                is_error=True,
            )

        if self._audit:
            audit_log.info("tool_call_started", tool=name, params=self._sanitize_params(params))

        t0 = time.monotonic()
        try:
            result = self._ensure_result(await tool.execute(**params))
        except Exception as e:
            if self._audit:
                audit_log.warning(
                    "tool_call_failed",
                    tool=name,
                    error=str(e),
                    duration_ms=round((time.monotonic() - t0) * 1000, 1),
                )
            raise

        if self._audit:
            audit_log.info(
                "tool_call_completed",
                tool=name,
                duration_ms=round((time.monotonic() - t0) * 1000, 1),
                result_length=len(result.text),
                is_error=result.is_error,
                detail_op=result.details.get("op") if result.details else None,
            )
        return result

    async def execute(self, name: str, params: dict[str, Any]) -> str:
        """
        Execute a tool by name with given parameters.

        Args:
            name: Tool name.
            params: Tool parameters.

        Returns:
            Tool execution result as string.
        """
        return (await self.execute_result(name, params)).text

    @property
    def tool_names(self) -> list[str]:
        """Get list of registered tool names."""
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
