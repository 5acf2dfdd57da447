"""LLM provider abstraction module."""

from relaybot.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from relaybot.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "ToolCallRequest", "LiteLLMProvider"]
