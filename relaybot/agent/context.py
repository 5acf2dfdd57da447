"""Context builder for assembling the system prompt and the current user turn."""

import asyncio
from pathlib import Path
from typing import Any

from relaybot.bus.events import InboundMessage
from relaybot.logging import get_logger
from relaybot.memory.store import MemoryStore

logger = get_logger(__name__)

_CORE_MISSING = "# Core missing\n"
_NO_USER_MEMORY = "_No stored user memories yet._"
_NO_SERVER_MEMORY = "_No stored server memories yet._"


class ContextBuilder:
    """
    Builds the system prompt and user turns for each exchange.

    The system prompt layers the static core prompt with the user's and the
    server's memory records, each under its own heading so the model knows
    which tool edits which section.
    """

    def __init__(self, core_prompt_path: Path, memory: MemoryStore):
        self.core_prompt_path = Path(core_prompt_path)
        self.memory = memory

    @staticmethod
    def _safe_read(path: Path, fallback: str = "") -> str:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return fallback
        except OSError as e:
            logger.warning("prompt_source_unreadable", path=str(path), error=str(e))
            return fallback

    def _read_sources(self, user_id: str, group_id: str | None) -> tuple[str, str, str]:
        core = self._safe_read(self.core_prompt_path, _CORE_MISSING)
        user_mem = self._safe_read(self.memory.user_file(user_id))
        server_mem = self._safe_read(self.memory.group_file(group_id)) if group_id else ""
        return core, user_mem, server_mem

    async def build_system_prompt(self, user_id: str, group_id: str | None = None) -> str:
        """
        Build the system prompt from the core prompt and memory records.

        The files are read in a worker thread.

        Args:
            user_id: The sender whose memory is included.
            group_id: The server the message came from, if any.

        Returns:
            Complete system prompt string.
        """
        core, user_mem, server_mem = await asyncio.to_thread(self._read_sources, user_id, group_id)

        return "\n".join([
            core.strip(),
            "",
            "---",
            "### [User memory]",
            user_mem.strip() or _NO_USER_MEMORY,
            "",
            "### [Server memory]",
            server_mem.strip() or _NO_SERVER_MEMORY,
        ])

    @staticmethod
    def build_user_turn(msg: InboundMessage) -> dict[str, Any]:
        """Wrap the cleaned message text with sender, origin and receipt-time metadata."""
        timestamp = msg.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        origin = msg.group_name or "DM"
        origin_id = msg.group_id or "none"
        content = (
            f"{msg.content}\n\n"
            f"(Sent by {msg.sender_name}/{msg.sender_username} (User ID: {msg.sender_id}) "
            f"on server {origin} (Server ID: {origin_id}) at {timestamp})"
        )
        return {"role": "user", "content": content}

    @staticmethod
    def apply_system_prompt(history: list[dict[str, Any]], system_prompt: str) -> list[dict[str, Any]]:
        """Return a copy of *history* whose first turn is the given system prompt."""
        patched = list(history)
        if patched and patched[0].get("role") == "system":
            patched[0] = {**patched[0], "content": system_prompt}
        else:
            patched.insert(0, {"role": "system", "content": system_prompt})
        return patched
