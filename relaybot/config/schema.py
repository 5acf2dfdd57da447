"""Configuration schema using Pydantic settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration read from the environment (and an optional ``.env`` file).

    Field names map to upper-case environment variables, e.g. ``discord_token`` is
    read from ``DISCORD_TOKEN``.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Credentials (required, checked by load_config)
    openrouter_api_key: str = ""
    discord_token: str = ""

    # Models
    reply_model: str = "anthropic/claude-sonnet-4.5"
    worker_model: str = "anthropic/claude-haiku-4.5"  # cheap model used for memory merging

    # OpenRouter attribution headers
    openrouter_site_url: str = ""
    openrouter_app_name: str = "DiscordBot"

    # Storage locations
    sqlite_path: Path = Path("./data.sqlite")
    memories_dir: Path = Path("./memories")
    core_prompt_path: Path = Path("prompts/core/sysmsg.md")
    default_system_prompt_path: Path = Path("config/sysmsg.md")

    # Limits
    max_history_messages: int = Field(default=22, ge=1)
    max_history_chars: int = Field(default=11500, ge=0)
    memory_max_chars: int = Field(default=1200, ge=1)
    max_tool_rounds: int = Field(default=4, ge=1)

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def extra_headers(self) -> dict[str, str]:
        """Attribution headers sent with every completion request."""
        return {
            "HTTP-Referer": self.openrouter_site_url,
            "X-Title": self.openrouter_app_name,
        }
