"""Agent tools module."""

from relaybot.agent.tools.base import Tool, ToolExecutionResult
from relaybot.agent.tools.memory import EditMemoryTool, create_memory_tool_registry
from relaybot.agent.tools.registry import ToolRegistry

__all__ = ["EditMemoryTool", "Tool", "ToolExecutionResult", "ToolRegistry", "create_memory_tool_registry"]
