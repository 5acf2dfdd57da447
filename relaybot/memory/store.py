"""File-backed per-user and per-server memory records."""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path

from relaybot.errors import StorageError
from relaybot.logging import get_logger
from relaybot.utils.helpers import atomic_write_text, ensure_dir, read_text_or, safe_filename, truncate

logger = get_logger(__name__)


class MemoryScope(str, Enum):
    """Who a memory record belongs to."""

    USER = "user"
    GROUP = "server"


class MemoryStore:
    """
    One markdown file per identity under ``<root>/users`` and ``<root>/servers``.

    Every write is clipped to ``max_chars``. File access runs in worker threads.
    """

    def __init__(self, root: Path, max_chars: int = 1200):
        self.root = Path(root)
        self.users_dir = self.root / "users"
        self.servers_dir = self.root / "servers"
        self.max_chars = max_chars

    def ensure_layout(self) -> None:
        """Create the memory directories. Safe to call repeatedly."""
        for path in (self.root, self.users_dir, self.servers_dir):
            ensure_dir(path)
        logger.debug("memory_layout_ready", root=str(self.root))

    def user_file(self, user_id: str) -> Path:
        return self.users_dir / f"{safe_filename(user_id)}.md"

    def group_file(self, group_id: str) -> Path:
        return self.servers_dir / f"{safe_filename(group_id)}.md"

    def path_for(self, scope: MemoryScope, identity: str) -> Path:
        if scope is MemoryScope.USER:
            return self.user_file(identity)
        return self.group_file(identity)

    async def read(self, path: Path) -> str:
        """Return the record's text, or an empty string if none exists yet."""
        try:
            return await asyncio.to_thread(read_text_or, path, "")
        except OSError as e:
            raise StorageError(f"Failed to read memory file {path}: {e}") from e

    async def write(self, path: Path, text: str) -> str:
        """Clip *text* to the cap, store it, and return what was written."""
        clipped = truncate(text, self.max_chars)
        try:
            await asyncio.to_thread(atomic_write_text, path, clipped)
        except OSError as e:
            raise StorageError(f"Failed to write memory file {path}: {e}") from e
        logger.debug("memory_written", path=str(path), chars=len(clipped), cap=self.max_chars)
        return clipped
