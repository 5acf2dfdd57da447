"""Chat channels module."""

from relaybot.channels.base import BaseChannel

__all__ = ["BaseChannel"]
