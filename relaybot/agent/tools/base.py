"""Base class for agent tools."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolExecutionResult:
    """Text fed back to the model plus optional structured details for logging."""

    text: str
    details: dict[str, Any] = field(default_factory=dict)
    is_error: bool = False


class Tool(ABC):
    """
    Abstract base class for agent tools.

    Tools are capabilities the model can invoke by name during a turn.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name used in function calls."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Description of what the tool does."""
        pass

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for tool parameters."""
        pass

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str | ToolExecutionResult:
        """Execute the tool with the given parameters."""
        pass

    def missing_params(self, params: dict[str, Any]) -> list[str]:
        """Return required parameter names that are absent or empty."""
        required = self.parameters.get("required", [])
        return [key for key in required if not params.get(key)]

    def to_schema(self) -> dict[str, Any]:
        """Convert tool to OpenAI function schema format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
