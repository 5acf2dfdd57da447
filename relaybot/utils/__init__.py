"""Utility functions for relaybot."""

from relaybot.utils.helpers import atomic_write_text, ensure_dir, safe_filename

__all__ = ["atomic_write_text", "ensure_dir", "safe_filename"]
