"""Exception hierarchy shared across the relay."""

from __future__ import annotations

_BODY_EXCERPT_CHARS = 500


class RelayError(Exception):
    """Base class for errors raised by relaybot."""


class ConfigError(RelayError):
    """A required setting is missing or invalid. Fatal at startup."""


class CompletionError(RelayError):
    """The completion API failed or returned nothing usable.

    ``status_code`` is the upstream HTTP status when one is known; ``body`` is the
    (already truncated) upstream response text kept for diagnostics.
    """

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @classmethod
    def from_upstream(cls, status_code: int | None, body: str) -> "CompletionError":
        excerpt = body[:_BODY_EXCERPT_CHARS]
        status = status_code if status_code is not None else "unknown"
        return cls(f"Completion API error {status}: {excerpt}", status_code=status_code, body=excerpt)


class StorageError(RelayError):
    """The key-value store or the memory filesystem is unavailable."""
