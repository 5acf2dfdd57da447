"""Configuration module for relaybot."""

from relaybot.config.loader import load_config
from relaybot.config.schema import Settings

__all__ = ["Settings", "load_config"]
