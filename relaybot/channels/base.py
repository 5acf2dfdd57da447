"""Base channel interface for chat platforms."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from relaybot.bus.events import InboundMessage
from relaybot.logging import get_logger

logger = get_logger(__name__)

MessageHandler = Callable[[InboundMessage, "BaseChannel"], Awaitable[None]]


class BaseChannel(ABC):
    """
    Abstract base class for chat channel implementations.

    A channel turns platform events into InboundMessage objects, hands them to
    the message handler, and exposes the two reply operations the handler
    needs: send a new reply and edit it later.
    """

    name: str = "base"
    max_message_length: int = 2000

    def __init__(self, config: Any, handler: MessageHandler | None = None):
        """
        Initialize the channel.

        Args:
            config: Channel-specific configuration.
            handler: Coroutine called for every inbound message.
        """
        self.config = config
        self.handler = handler
        self._running = False

    @abstractmethod
    async def start(self) -> None:
        """
        Start the channel and begin listening for messages.

        This should be a long-running async task that connects to the chat
        platform and forwards messages via _handle_message().
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the channel and clean up resources."""
        pass

    @abstractmethod
    async def reply(self, msg: InboundMessage, content: str) -> Any:
        """
        Reply to *msg* and return a handle that can be passed to edit().

        Args:
            msg: The message being answered.
            content: Reply text.
        """
        pass

    @abstractmethod
    async def edit(self, handle: Any, content: str) -> None:
        """Replace the text of a reply previously returned by reply()."""
        pass

    def clip(self, content: str) -> str:
        """Truncate *content* to the platform's maximum message length."""
        return content[:self.max_message_length]

    async def _handle_message(self, msg: InboundMessage) -> None:
        """Forward an inbound message to the handler."""
        if self.handler is None:
            logger.warning("no_handler_registered", channel=self.name, chat_id=msg.chat_id)
            return
        await self.handler(msg, self)

    @property
    def is_running(self) -> bool:
        """Check if the channel is running."""
        return self._running
