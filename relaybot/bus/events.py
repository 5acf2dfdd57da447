"""Event types exchanged between channels and the orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class InboundMessage:
    """Message received from a chat channel."""

    channel: str  # discord, ...
    sender_id: str
    sender_name: str  # display name
    sender_username: str
    chat_id: str
    content: str  # text with addressing syntax already removed
    group_id: str | None = None  # None in one-to-one chats
    group_name: str | None = None
    mentioned: bool = False
    from_bot: bool = False
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)  # Channel-specific handles

    @property
    def is_group(self) -> bool:
        return self.group_id is not None

    @property
    def is_addressed(self) -> bool:
        """Group messages need an explicit mention; direct messages are always addressed."""
        return self.mentioned or not self.is_group
