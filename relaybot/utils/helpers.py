"""Small filesystem and text helpers."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def ensure_dir(path: Path) -> Path:
    """Create *path* (and parents) if needed and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(name: str) -> str:
    """Replace characters that are unsafe in file names with underscores."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name).strip()
    cleaned = cleaned.lstrip(".")
    return cleaned or "_"


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write *content* to *path* via a temp file in the same directory and rename it into place."""
    ensure_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.tmp-", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def read_text_or(path: Path, fallback: str = "", *, encoding: str = "utf-8") -> str:
    """Return the file's text, or *fallback* when it does not exist."""
    try:
        return path.read_text(encoding=encoding)
    except FileNotFoundError:
        return fallback


def truncate(text: str, limit: int) -> str:
    """Clip *text* to at most *limit* characters."""
    return text[:max(0, limit)]
