"""Discord channel implementation using discord.py."""

from __future__ import annotations

import re
from typing import Any

import discord

from relaybot.bus.events import InboundMessage
from relaybot.channels.base import BaseChannel, MessageHandler
from relaybot.logging import get_logger

logger = get_logger(__name__)


def _default_intents() -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    intents.dm_messages = True
    intents.message_content = True
    return intents


def is_bot_mentioned(message: discord.Message, bot_user: Any) -> bool:
    """
    True when the message pings the bot.

    Counts a direct user mention (replies that ping included), @everyone/@here,
    and a mention of any role the bot holds in that guild.
    """
    if bot_user is None:
        return False
    if any(m.id == bot_user.id for m in message.mentions):
        return True
    if message.mention_everyone:
        return True
    me = message.guild.me if message.guild is not None else None
    bot_role_ids = {r.id for r in getattr(me, "roles", ())}
    return any(r.id in bot_role_ids for r in message.role_mentions)


def strip_mention(content: str, bot_id: int | str | None) -> str:
    """Remove the first ``<@id>`` / ``<@!id>`` mention of the bot and trim whitespace."""
    if bot_id is None:
        return content.strip()
    return re.sub(rf"<@!?{bot_id}>", "", content, count=1).strip()


class DiscordChannel(BaseChannel):
    """
    Discord channel over the gateway websocket.

    discord.py dispatches every event in its own task, so messages from
    different users are handled concurrently.
    """

    name = "discord"
    max_message_length = 2000

    def __init__(self, token: str, handler: MessageHandler | None = None, client: discord.Client | None = None):
        super().__init__(config=None, handler=handler)
        self._token = token
        self._client = client or discord.Client(intents=_default_intents())
        self._client.event(self.on_ready)
        self._client.event(self.on_message)

    async def start(self) -> None:
        self._running = True
        try:
            await self._client.start(self._token)
        finally:
            self._running = False

    async def stop(self) -> None:
        self._running = False
        if not self._client.is_closed():
            await self._client.close()

    async def on_ready(self) -> None:
        user = self._client.user
        logger.info("logged_in", channel=self.name, user=str(user) if user else None)

    def to_inbound(self, message: discord.Message) -> InboundMessage:
        """Convert a discord.py message into an InboundMessage."""
        bot_user = self._client.user
        guild = message.guild
        raw = message.content or ""
        if guild is not None:
            mentioned = is_bot_mentioned(message, bot_user)
            content = strip_mention(raw, bot_user.id if bot_user else None)
        else:
            mentioned = True
            content = raw.strip()

        return InboundMessage(
            channel=self.name,
            sender_id=str(message.author.id),
            sender_name=getattr(message.author, "display_name", message.author.name),
            sender_username=message.author.name,
            chat_id=str(message.channel.id),
            content=content,
            group_id=str(guild.id) if guild is not None else None,
            group_name=guild.name if guild is not None else None,
            mentioned=mentioned,
            from_bot=bool(message.author.bot),
            metadata={"message": message, "message_id": str(message.id)},
        )

    async def on_message(self, message: discord.Message) -> None:
        await self._handle_message(self.to_inbound(message))

    async def reply(self, msg: InboundMessage, content: str) -> Any:
        message: discord.Message = msg.metadata["message"]
        return await message.reply(self.clip(content))

    async def edit(self, handle: Any, content: str) -> None:
        await handle.edit(content=self.clip(content))
