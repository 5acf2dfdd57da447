"""Long-term memory records for users and servers."""

from relaybot.memory.merge import MemoryMerger, normalize_memory
from relaybot.memory.store import MemoryScope, MemoryStore

__all__ = ["MemoryMerger", "MemoryScope", "MemoryStore", "normalize_memory"]
