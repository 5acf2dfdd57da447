"""Tools that let the model edit user and server memory."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from relaybot.agent.tools.base import Tool, ToolExecutionResult
from relaybot.agent.tools.registry import ToolRegistry
from relaybot.memory.merge import MemoryMerger
from relaybot.memory.store import MemoryScope, MemoryStore

OP_EDIT_MEMORY = "edit_memory"

# scope -> (tool name, identity argument, identity description, subject)
_SCOPE_SPECS: dict[MemoryScope, tuple[str, str, str, str]] = {
    MemoryScope.USER: ("editUserMemory", "userId", "Discord user id", "the current user"),
    MemoryScope.GROUP: ("editServerMemory", "guildId", "Discord guild id", "the current server"),
}


class EditMemoryTool(Tool):
    """Merge a fact or instruction into one scope's memory record."""

    def __init__(self, scope: MemoryScope, store: MemoryStore, merger: MemoryMerger):
        self.scope = scope
        self.store = store
        self.merger = merger
        self._name, self._id_arg, self._id_description, self._subject = _SCOPE_SPECS[scope]

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"Store or update facts about {self._subject}. Keep it short and helpful."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                self._id_arg: {"type": "string", "description": self._id_description},
                "memory": {
                    "type": "string",
                    "description": "Either a MEMORY or an INSTRUCTION in string form.",
                },
            },
            "required": [self._id_arg, "memory"],
        }

    async def execute(self, memory: str = "", **kwargs: Any) -> ToolExecutionResult:
        identity = str(kwargs.get(self._id_arg) or "")
        if not identity or not memory:
            return ToolExecutionResult(text=f"ERROR: missing {self._id_arg} or memory", is_error=True)

        path = self.store.path_for(self.scope, identity)
        existing = await self.store.read(path)
        stamped = f"({datetime.now(timezone.utc).isoformat()}) {memory}"
        merged = await self.merger.merge(existing, stamped, self.scope)
        final = await self.store.write(path, merged)
        return ToolExecutionResult(
            text=f"OK: {self.scope.value} memory updated ({len(final)}/{self.store.max_chars} chars).",
            details={
                "op": OP_EDIT_MEMORY,
                "scope": self.scope.value,
                "identity": identity,
                "chars": len(final),
                "cap": self.store.max_chars,
            },
        )


def create_memory_tool_registry(
    store: MemoryStore,
    merger: MemoryMerger,
    audit_tool_calls: bool = True,
) -> ToolRegistry:
    """Registry holding exactly the user and server memory tools."""
    registry = ToolRegistry(audit=audit_tool_calls)
    for scope in MemoryScope:
        registry.register(EditMemoryTool(scope, store, merger))
    return registry
