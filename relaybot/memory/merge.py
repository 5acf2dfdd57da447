"""Merge a new fact or instruction into a memory record via a small model."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

from relaybot.logging import get_logger
from relaybot.memory.store import MemoryScope

logger = get_logger(__name__)


class TextCompleter(Protocol):
    async def complete(self, messages: list[dict[str, Any]], model: str | None = None) -> str: ...


def _merge_instruction(scope_label: str, max_chars: int) -> str:
    return (
        f"You maintain concise {scope_label} memory for a Discord AI.\n"
        "- Input: A string beginning with either INSTRUCTION or MEMORY. "
        "If MEMORY, add the memory to file. If INSTRUCTION, execute it.\n"
        "- Output: a revised memory in markdown bullets.\n"
        "- Each line starts with an ISO date in parentheses.\n"
        "- Merge duplicates. Remove stale/contradictory info. Prefer stable facts.\n"
        "- Be terse. No preamble, no code fences. No headings. Only bullets.\n"
        f"- Stay under {max_chars} characters total."
    )


def normalize_memory(text: str, max_chars: int) -> str:
    """Force one trimmed ``- `` bullet per non-empty line and clip to *max_chars*."""
    lines = [line.strip() for line in text.split("\n")]
    bullets = [line if line.startswith("- ") else f"- {line}" for line in lines if line]
    return "\n".join(bullets)[:max_chars]


class MemoryMerger:
    """Ask the worker model to fold new input into existing bullets."""

    def __init__(self, provider: TextCompleter, model: str | None, max_chars: int = 1200):
        self.provider = provider
        self.model = model
        self.max_chars = max_chars

    async def merge(self, existing: str, new_input: str, scope: MemoryScope) -> str:
        now = datetime.now(timezone.utc).isoformat()
        user = (
            f"CURRENT_MEMORY:\n{existing or '(empty)'}\n\n"
            f"INPUT: {new_input.strip()}\n\n"
            f"Today is {now}."
        )
        messages = [
            {"role": "system", "content": _merge_instruction(scope.value, self.max_chars)},
            {"role": "user", "content": user},
        ]
        result = await self.provider.complete(messages, model=self.model)
        merged = normalize_memory(result, self.max_chars)
        if len(result) > self.max_chars:
            logger.info("memory_merge_clipped", scope=scope.value, returned_chars=len(result), cap=self.max_chars)
        return merged
