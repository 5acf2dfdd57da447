"""Message event types."""

from relaybot.bus.events import InboundMessage

__all__ = ["InboundMessage"]
