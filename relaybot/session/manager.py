"""Per-user conversation history with lazy retention."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Protocol

from relaybot.logging import get_logger
from relaybot.utils.helpers import read_text_or

logger = get_logger(__name__)

_FALLBACK_SYSTEM_PROMPT = "You are a helpful assistant in a Discord chat."


class KeyValueBackend(Protocol):
    async def get(self, key: str) -> Any | None: ...
    async def set(self, key: str, value: Any) -> None: ...


def history_chars(turns: list[dict[str, Any]]) -> int:
    """Total characters of ``content`` across *turns*."""
    return sum(len(t.get("content") or "") for t in turns)


def trim_history(
    turns: list[dict[str, Any]],
    max_messages: int,
    max_chars: int,
) -> tuple[list[dict[str, Any]], int]:
    """
    Evict the oldest non-system turns until both limits hold.

    Index 0 is never removed. Turns are dropped one at a time from index 1
    without regard to user/assistant pairing.

    Returns:
        (trimmed copy, number of evicted turns).
    """
    trimmed = list(turns)
    total = history_chars(trimmed)
    evicted = 0
    while (len(trimmed) > max_messages or total > max_chars) and len(trimmed) > 1:
        dropped = trimmed.pop(1)
        total -= len(dropped.get("content") or "")
        evicted += 1
    return trimmed, evicted


class SessionManager:
    """
    Stores each user's ordered turn list in a key-value backend.

    Limits are enforced on read: ``append_to_history`` may leave an over-long
    record behind, which the next ``get_history`` trims and persists.
    """

    def __init__(
        self,
        store: KeyValueBackend,
        default_system_prompt_path: Path,
        max_messages: int = 22,
        max_chars: int = 11500,
    ):
        self.store = store
        self.default_system_prompt_path = Path(default_system_prompt_path)
        self.max_messages = max_messages
        self.max_chars = max_chars

    async def _default_system_turn(self) -> dict[str, Any]:
        content = await asyncio.to_thread(read_text_or, self.default_system_prompt_path, "")
        if not content:
            logger.warning(
                "default_system_prompt_missing",
                path=str(self.default_system_prompt_path),
            )
            content = _FALLBACK_SYSTEM_PROMPT
        return {"role": "system", "content": content}

    async def get_history(self, user_id: str) -> list[dict[str, Any]]:
        """
        Load the user's history, trimmed to the retention limits.

        A user with no stored record gets a single default system turn.

        Raises:
            StorageError: if the backing store is unavailable.
        """
        stored = await self.store.get(user_id)
        history: list[dict[str, Any]] = stored if stored else [await self._default_system_turn()]

        trimmed, evicted = trim_history(history, self.max_messages, self.max_chars)
        if evicted:
            await self.store.set(user_id, trimmed)
            logger.debug(
                "history_trimmed",
                user_id=user_id,
                evicted=evicted,
                message_count=len(trimmed),
                total_chars=history_chars(trimmed),
            )
        return trimmed

    async def append_to_history(self, user_id: str, turns: list[dict[str, Any]]) -> None:
        """Append *turns* in order after the current (trimmed) history and persist."""
        history = await self.get_history(user_id)
        updated = [*history, *turns]
        await self.store.set(user_id, updated)
        logger.debug("history_appended", user_id=user_id, added=len(turns), message_count=len(updated))
