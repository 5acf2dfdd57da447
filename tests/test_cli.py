import asyncio
from pathlib import Path
from types import SimpleNamespace

from typer.testing import CliRunner

import relaybot.cli.commands as commands_module
from relaybot.cli.commands import app, build_runtime
from relaybot.config.schema import Settings
from relaybot.errors import ConfigError
from relaybot.session.kv import KeyValueStore


def _settings(tmp_path: Path) -> Settings:
    prompt = tmp_path / "sysmsg.md"
    prompt.write_text("default prompt", encoding="utf-8")
    return Settings(
        _env_file=None,
        openrouter_api_key="sk-or-v1-test",
        discord_token="token",
        sqlite_path=tmp_path / "data.sqlite",
        memories_dir=tmp_path / "memories",
        default_system_prompt_path=prompt,
        core_prompt_path=tmp_path / "core.md",
    )


def test_build_runtime_wires_components_and_creates_memory_dirs(tmp_path: Path) -> None:
    runtime = build_runtime(_settings(tmp_path))
    try:
        assert (tmp_path / "memories" / "users").is_dir()
        assert (tmp_path / "memories" / "servers").is_dir()
        runner = runtime.orchestrator.runner
        assert runner.model == "anthropic/claude-sonnet-4.5"
        assert runner.max_rounds == 4
        assert sorted(runner.tools.tool_names) == ["editServerMemory", "editUserMemory"]
        assert runtime.provider.extra_headers == {"X-Title": "DiscordBot"}
    finally:
        runtime.kv.close()


def test_gateway_exits_when_credentials_missing(monkeypatch) -> None:
    def _fail():
        raise ConfigError("OPENROUTER_API_KEY, DISCORD_TOKEN missing in environment!")

    monkeypatch.setattr(commands_module, "load_config", _fail)
    monkeypatch.setattr(commands_module, "setup_logging", lambda **kwargs: None)

    result = CliRunner().invoke(app, ["gateway"])

    assert result.exit_code == 1


def test_history_prints_stored_turns(tmp_path: Path, monkeypatch) -> None:
    settings = _settings(tmp_path)
    kv = KeyValueStore(settings.sqlite_path)
    asyncio.run(kv.set("42", [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "hi there"},
    ]))
    kv.close()
    monkeypatch.setattr(commands_module, "Settings", lambda: settings)

    result = CliRunner().invoke(app, ["history", "42"])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert "[user] hello" in lines
    assert lines.index("[system] sys") < lines.index("[user] hello") < lines.index("[assistant] hi there")


def test_memory_prints_record_or_placeholder(tmp_path: Path, monkeypatch) -> None:
    memories = tmp_path / "memories"
    (memories / "servers").mkdir(parents=True)
    (memories / "servers" / "777.md").write_text("- no spoilers", encoding="utf-8")
    monkeypatch.setattr(
        commands_module,
        "Settings",
        lambda: SimpleNamespace(memories_dir=memories, memory_max_chars=1200),
    )

    runner = CliRunner()
    server = runner.invoke(app, ["memory", "server", "777"])
    user = runner.invoke(app, ["memory", "user", "42"])

    assert server.exit_code == 0
    assert server.output.strip() == "- no spoilers"
    assert user.output.strip() == "(empty)"


def test_version_flag() -> None:
    result = CliRunner().invoke(app, ["--version"])

    assert result.exit_code == 0
    assert "relaybot v" in result.output
