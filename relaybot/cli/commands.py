"""CLI commands for relaybot."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import typer

from relaybot import __logo__, __version__
from relaybot.agent.context import ContextBuilder
from relaybot.agent.orchestrator import ConversationOrchestrator
from relaybot.agent.tools.memory import create_memory_tool_registry
from relaybot.agent.turn_runner import TurnRunner
from relaybot.config.loader import load_config
from relaybot.config.schema import Settings
from relaybot.errors import ConfigError
from relaybot.logging import get_logger, setup_logging
from relaybot.memory.merge import MemoryMerger
from relaybot.memory.store import MemoryScope, MemoryStore
from relaybot.providers.litellm_provider import LiteLLMProvider
from relaybot.session.kv import KeyValueStore
from relaybot.session.manager import SessionManager

app = typer.Typer(
    name="relaybot",
    help=f"{__logo__} relaybot - Discord to LLM chat relay with memory",
    no_args_is_help=True,
)

logger = get_logger(__name__)


@dataclass
class Runtime:
    """Wired components for one process."""

    settings: Settings
    kv: KeyValueStore
    sessions: SessionManager
    memory: MemoryStore
    provider: LiteLLMProvider
    orchestrator: ConversationOrchestrator


def build_runtime(settings: Settings) -> Runtime:
    """Construct every component from settings. Creates the memory directories."""
    memory = MemoryStore(settings.memories_dir, max_chars=settings.memory_max_chars)
    memory.ensure_layout()

    kv = KeyValueStore(settings.sqlite_path, namespace="user-chats")
    sessions = SessionManager(
        kv,
        default_system_prompt_path=settings.default_system_prompt_path,
        max_messages=settings.max_history_messages,
        max_chars=settings.max_history_chars,
    )
    provider = LiteLLMProvider(
        api_key=settings.openrouter_api_key,
        default_model=settings.reply_model,
        extra_headers=settings.extra_headers,
    )
    merger = MemoryMerger(provider, model=settings.worker_model, max_chars=settings.memory_max_chars)
    tools = create_memory_tool_registry(memory, merger)
    runner = TurnRunner(
        provider=provider,
        tools=tools,
        model=settings.reply_model,
        max_rounds=settings.max_tool_rounds,
    )
    orchestrator = ConversationOrchestrator(
        sessions=sessions,
        context=ContextBuilder(settings.core_prompt_path, memory),
        runner=runner,
    )
    return Runtime(
        settings=settings,
        kv=kv,
        sessions=sessions,
        memory=memory,
        provider=provider,
        orchestrator=orchestrator,
    )


def _load_or_exit() -> Settings:
    try:
        settings = load_config()
    except ConfigError as e:
        setup_logging(json_output=False)
        logger.error("config_invalid", error=str(e))
        raise typer.Exit(code=1)
    setup_logging(json_output=settings.log_json, level=settings.log_level)
    return settings


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{__logo__} relaybot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
) -> None:
    """relaybot - Discord to LLM chat relay."""
    pass


@app.command()
def gateway() -> None:
    """Connect to Discord and relay messages until interrupted."""
    from relaybot.channels.discord import DiscordChannel

    settings = _load_or_exit()
    runtime = build_runtime(settings)
    channel = DiscordChannel(settings.discord_token, handler=runtime.orchestrator.handle)

    async def _run() -> None:
        try:
            await channel.start()
        finally:
            await channel.stop()

    logger.info("gateway_starting", model=settings.reply_model, worker_model=settings.worker_model)
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        logger.info("gateway_interrupted")
    finally:
        runtime.kv.close()


@app.command()
def history(user_id: str = typer.Argument(..., help="User id whose history to print")) -> None:
    """Print a user's stored conversation history (after retention trimming)."""
    settings = Settings()
    kv = KeyValueStore(settings.sqlite_path, namespace="user-chats")
    sessions = SessionManager(
        kv,
        default_system_prompt_path=settings.default_system_prompt_path,
        max_messages=settings.max_history_messages,
        max_chars=settings.max_history_chars,
    )
    try:
        turns = asyncio.run(sessions.get_history(user_id))
    finally:
        kv.close()
    for turn in turns:
        typer.echo(f"[{turn.get('role', '?')}] {turn.get('content') or ''}")


@app.command()
def memory(
    scope: MemoryScope = typer.Argument(..., help="user or server"),
    identity: str = typer.Argument(..., help="User or server id"),
) -> None:
    """Print a stored memory record."""
    settings = Settings()
    store = MemoryStore(settings.memories_dir, max_chars=settings.memory_max_chars)
    text = asyncio.run(store.read(store.path_for(scope, identity)))
    typer.echo(text or "(empty)")


if __name__ == "__main__":
    app()
