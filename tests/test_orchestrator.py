"""End-to-end tests for message handling with a fake channel and a scripted model."""

import asyncio
from pathlib import Path
from typing import Any

import pytest

from relaybot.agent.context import ContextBuilder
from relaybot.agent.orchestrator import (
    EMPTY_MESSAGE_REPLY,
    ERROR_REPLY,
    THINKING_REPLIES,
    ConversationOrchestrator,
    format_error_reply,
)
from relaybot.agent.turn_runner import TurnRunner
from relaybot.bus.events import InboundMessage
from relaybot.channels.base import BaseChannel
from relaybot.errors import CompletionError
from relaybot.memory.store import MemoryStore
from relaybot.providers.base import LLMResponse
from relaybot.session.manager import SessionManager


class _FakeChannel(BaseChannel):
    name = "fake"

    def __init__(self):
        super().__init__(config=None)
        self.replies: list[dict[str, Any]] = []

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    async def reply(self, msg, content):
        handle = {"to": msg.sender_id, "content": content, "edits": []}
        self.replies.append(handle)
        return handle

    async def edit(self, handle, content):
        handle["edits"].append(content)


class _MemoryKV:
    def __init__(self):
        self.data: dict[str, Any] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value


class _ScriptedProvider:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.requests: list[list[dict[str, Any]]] = []

    async def chat(self, **kwargs):
        self.requests.append(list(kwargs["messages"]))
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return LLMResponse(content=answer)


class _NoTools:
    def get_definitions(self):
        return []

    async def execute(self, name, params):
        raise AssertionError("no tools expected")


def _msg(content="hello", sender_id="42", **overrides):
    fields = dict(
        channel="discord",
        sender_id=sender_id,
        sender_name="Ada",
        sender_username="ada_l",
        chat_id="c1",
        content=content,
        group_id="777",
        group_name="Engines",
        mentioned=True,
    )
    fields.update(overrides)
    return InboundMessage(**fields)


def _orchestrator(tmp_path: Path, provider):
    default_prompt = tmp_path / "config" / "sysmsg.md"
    default_prompt.parent.mkdir()
    default_prompt.write_text("default", encoding="utf-8")
    core = tmp_path / "core.md"
    core.write_text("core prompt", encoding="utf-8")
    store = MemoryStore(tmp_path / "memories")
    store.ensure_layout()

    kv = _MemoryKV()
    orchestrator = ConversationOrchestrator(
        sessions=SessionManager(kv, default_system_prompt_path=default_prompt),
        context=ContextBuilder(core, store),
        runner=TurnRunner(provider=provider, tools=_NoTools(), model="reply-model"),
    )
    return orchestrator, kv


@pytest.mark.asyncio
async def test_ignores_bot_authors_and_unaddressed_group_messages(tmp_path: Path) -> None:
    provider = _ScriptedProvider()
    orchestrator, kv = _orchestrator(tmp_path, provider)
    channel = _FakeChannel()

    await orchestrator.handle(_msg(from_bot=True), channel)
    await orchestrator.handle(_msg(mentioned=False), channel)

    assert channel.replies == []
    assert provider.requests == []
    assert kv.data == {}


@pytest.mark.asyncio
async def test_direct_messages_do_not_need_a_mention(tmp_path: Path) -> None:
    orchestrator, _ = _orchestrator(tmp_path, _ScriptedProvider("hi back"))
    channel = _FakeChannel()

    await orchestrator.handle(_msg(group_id=None, group_name=None, mentioned=False), channel)

    assert channel.replies[0]["edits"] == ["hi back"]


@pytest.mark.asyncio
async def test_empty_message_gets_notice_without_model_call(tmp_path: Path) -> None:
    provider = _ScriptedProvider()
    orchestrator, kv = _orchestrator(tmp_path, provider)
    channel = _FakeChannel()

    await orchestrator.handle(_msg(content="   "), channel)

    assert [r["content"] for r in channel.replies] == [EMPTY_MESSAGE_REPLY]
    assert provider.requests == []
    assert kv.data == {}
    assert orchestrator.locks.pending_keys() == []


@pytest.mark.asyncio
async def test_first_exchange_sends_system_and_user_and_persists_both_turns(tmp_path: Path) -> None:
    provider = _ScriptedProvider("Hello Ada!")
    orchestrator, kv = _orchestrator(tmp_path, provider)
    channel = _FakeChannel()

    await orchestrator.handle(_msg(content="hello"), channel)

    request = provider.requests[0]
    assert [m["role"] for m in request] == ["system", "user"]
    assert request[0]["content"].startswith("core prompt")
    assert request[1]["content"].startswith("hello\n\n(Sent by Ada/ada_l (User ID: 42) on server Engines")

    placeholder = channel.replies[0]
    assert placeholder["content"] in THINKING_REPLIES
    assert placeholder["edits"] == ["Hello Ada!"]

    stored = kv.data["42"]
    assert [m["role"] for m in stored] == ["system", "user", "assistant"]
    assert stored[0]["content"] == "default"
    assert stored[1] == request[1]
    assert stored[2] == {"role": "assistant", "content": "Hello Ada!"}


@pytest.mark.asyncio
async def test_failure_edits_placeholder_with_apology_and_persists_nothing(tmp_path: Path) -> None:
    provider = _ScriptedProvider(CompletionError.from_upstream(500, "internal error"))
    orchestrator, kv = _orchestrator(tmp_path, provider)
    channel = _FakeChannel()

    await orchestrator.handle(_msg(), channel)

    (edit,) = channel.replies[0]["edits"]
    assert edit.startswith(ERROR_REPLY)
    assert "Completion API error 500: internal error" in edit
    assert kv.data == {}


@pytest.mark.asyncio
async def test_long_answer_is_truncated_to_channel_limit(tmp_path: Path) -> None:
    orchestrator, kv = _orchestrator(tmp_path, _ScriptedProvider("y" * 2500))
    channel = _FakeChannel()

    await orchestrator.handle(_msg(), channel)

    assert channel.replies[0]["edits"] == ["y" * 2000]
    # history keeps the full answer
    assert kv.data["42"][-1]["content"] == "y" * 2500


@pytest.mark.asyncio
async def test_blank_answer_shows_no_content_marker(tmp_path: Path) -> None:
    orchestrator, _ = _orchestrator(tmp_path, _ScriptedProvider(""))
    channel = _FakeChannel()

    await orchestrator.handle(_msg(), channel)

    assert channel.replies[0]["edits"] == ["(no content)"]


@pytest.mark.asyncio
async def test_same_user_exchanges_see_each_others_history(tmp_path: Path) -> None:
    provider = _ScriptedProvider("first answer", "second answer")
    orchestrator, kv = _orchestrator(tmp_path, provider)
    channel = _FakeChannel()

    await asyncio.gather(
        orchestrator.handle(_msg(content="one"), channel),
        orchestrator.handle(_msg(content="two"), channel),
    )

    second_request = provider.requests[1]
    assert [m["role"] for m in second_request] == ["system", "user", "assistant", "user"]
    assert second_request[2]["content"] == "first answer"
    assert len(kv.data["42"]) == 5


def test_format_error_reply_limits_excerpt() -> None:
    text = format_error_reply(RuntimeError("z" * 5000))

    assert text.startswith(ERROR_REPLY + "\n\n```\n")
    assert text.endswith("\n```")
    assert text.count("z") == 800


def test_format_error_reply_without_message() -> None:
    assert format_error_reply(RuntimeError()) == ERROR_REPLY
