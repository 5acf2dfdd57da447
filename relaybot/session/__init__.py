"""Session management module."""

from relaybot.session.kv import KeyValueStore
from relaybot.session.manager import SessionManager, trim_history

__all__ = ["KeyValueStore", "SessionManager", "trim_history"]
