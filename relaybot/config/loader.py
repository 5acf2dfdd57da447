"""Load and validate settings at startup."""

from __future__ import annotations

from typing import Any

from relaybot.config.schema import Settings
from relaybot.errors import ConfigError

_REQUIRED_CREDENTIALS = (
    ("openrouter_api_key", "OPENROUTER_API_KEY"),
    ("discord_token", "DISCORD_TOKEN"),
)


def load_config(**overrides: Any) -> Settings:
    """Build settings from the environment and fail fast on missing credentials.

    Raises:
        ConfigError: if any required credential is empty.
    """
    settings = Settings(**overrides)
    missing = [env for field, env in _REQUIRED_CREDENTIALS if not getattr(settings, field).strip()]
    if missing:
        raise ConfigError(f"{', '.join(missing)} missing in environment!")
    return settings
