"""Agent core module."""

from relaybot.agent.context import ContextBuilder
from relaybot.agent.orchestrator import ConversationOrchestrator
from relaybot.agent.turn_runner import TurnRunner
from relaybot.agent.user_lock import UserLockChain

__all__ = ["ContextBuilder", "ConversationOrchestrator", "TurnRunner", "UserLockChain"]
