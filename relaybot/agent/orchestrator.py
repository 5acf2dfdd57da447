"""Message handling: filter, serialize per user, compose, complete, persist, relay."""

from __future__ import annotations

import random
from typing import Any, Protocol

import structlog

from relaybot.agent.context import ContextBuilder
from relaybot.agent.turn_runner import NO_CONTENT_TEXT
from relaybot.agent.user_lock import UserLockChain
from relaybot.bus.events import InboundMessage
from relaybot.channels.base import BaseChannel
from relaybot.logging import get_logger

logger = get_logger(__name__)

THINKING_REPLIES = (
    "Thinking...",
    "Composing an answer...",
    "Considering your message...",
)
EMPTY_MESSAGE_REPLY = "Is your message empty?"
ERROR_REPLY = "Sorry, I ran into an error talking to the model."
_ERROR_EXCERPT_CHARS = 800


class HistoryStoreProtocol(Protocol):
    async def get_history(self, user_id: str) -> list[dict[str, Any]]: ...
    async def append_to_history(self, user_id: str, turns: list[dict[str, Any]]) -> None: ...


class TurnRunnerProtocol(Protocol):
    async def run(self, initial_messages: list[dict[str, Any]]) -> tuple[str, list[str], list[dict[str, Any]]]: ...


def format_error_reply(error: BaseException) -> str:
    """Apology text with a fenced excerpt of the error message."""
    message = str(error)
    if not message:
        return ERROR_REPLY
    return f"{ERROR_REPLY}\n\n```\n{message[:_ERROR_EXCERPT_CHARS]}\n```"


class ConversationOrchestrator:
    """
    Handle inbound chat messages end to end.

    Only messages addressed to the bot are processed. Exchanges for the same
    user run strictly one after another; different users run in parallel.
    Failures are reported back in the conversation and never propagate out of
    ``handle``.
    """

    def __init__(
        self,
        *,
        sessions: HistoryStoreProtocol,
        context: ContextBuilder,
        runner: TurnRunnerProtocol,
        locks: UserLockChain | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.sessions = sessions
        self.context = context
        self.runner = runner
        self.locks = locks or UserLockChain()
        self._rng = rng or random.Random()

    @staticmethod
    def should_handle(msg: InboundMessage) -> bool:
        """Ignore bots (including ourselves) and unaddressed group chatter."""
        return not msg.from_bot and msg.is_addressed

    async def handle(self, msg: InboundMessage, channel: BaseChannel) -> None:
        """Entry point for every inbound message."""
        try:
            if not self.should_handle(msg):
                return

            if not msg.content.strip():
                await channel.reply(msg, EMPTY_MESSAGE_REPLY)
                return

            await self.locks.run(msg.sender_id, lambda: self._exchange(msg, channel))
        except Exception:
            logger.exception("message_handler_failed", channel=channel.name, sender_id=msg.sender_id)

    async def _exchange(self, msg: InboundMessage, channel: BaseChannel) -> None:
        with structlog.contextvars.bound_contextvars(
            channel=msg.channel,
            chat_id=msg.chat_id,
            user_id=msg.sender_id,
        ):
            placeholder = await channel.reply(msg, self._rng.choice(THINKING_REPLIES))
            try:
                final = await self._complete(msg)
            except Exception as e:
                logger.exception("exchange_failed", error_type=type(e).__name__)
                await channel.edit(placeholder, format_error_reply(e))
                return
            await channel.edit(placeholder, channel.clip(final) or NO_CONTENT_TEXT)

    async def _complete(self, msg: InboundMessage) -> str:
        history = await self.sessions.get_history(msg.sender_id)
        system_prompt = await self.context.build_system_prompt(msg.sender_id, msg.group_id)
        history = self.context.apply_system_prompt(history, system_prompt)
        user_turn = self.context.build_user_turn(msg)

        final, tools_used, _ = await self.runner.run([*history, user_turn])

        await self.sessions.append_to_history(
            msg.sender_id,
            [user_turn, {"role": "assistant", "content": final}],
        )
        logger.info(
            "exchange_completed",
            history_len=len(history),
            tools_used=tools_used,
            reply_chars=len(final),
        )
        return final
