import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from relaybot.errors import StorageError
from relaybot.memory.store import MemoryScope, MemoryStore
from relaybot.utils.helpers import atomic_write_text, read_text_or, safe_filename


def test_atomic_write_text_creates_and_overwrites_file(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "sample.md"
    atomic_write_text(path, "v1\n", encoding="utf-8")
    assert path.read_text(encoding="utf-8") == "v1\n"

    atomic_write_text(path, "v2\n", encoding="utf-8")
    assert path.read_text(encoding="utf-8") == "v2\n"
    assert [p.name for p in path.parent.iterdir()] == ["sample.md"]


def test_read_text_or_returns_fallback_for_missing_file(tmp_path: Path) -> None:
    assert read_text_or(tmp_path / "missing.md", "fallback") == "fallback"


def test_safe_filename_replaces_path_separators() -> None:
    assert safe_filename("../../etc/passwd") == "_.._etc_passwd"
    assert safe_filename("123456789") == "123456789"
    assert safe_filename("") == "_"


def test_memory_store_layout_and_paths(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path / "memories")
    store.ensure_layout()
    store.ensure_layout()

    assert (tmp_path / "memories" / "users").is_dir()
    assert (tmp_path / "memories" / "servers").is_dir()
    assert store.path_for(MemoryScope.USER, "42") == tmp_path / "memories" / "users" / "42.md"
    assert store.path_for(MemoryScope.GROUP, "777") == tmp_path / "memories" / "servers" / "777.md"


@pytest.mark.asyncio
async def test_memory_store_write_clips_to_cap(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path / "memories", max_chars=10)

    written = await store.write(store.user_file("42"), "x" * 50)

    assert written == "x" * 10
    assert await store.read(store.user_file("42")) == "x" * 10


@pytest.mark.asyncio
async def test_memory_store_read_missing_record_is_empty(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path / "memories")

    assert await store.read(store.user_file("nobody")) == ""


@pytest.mark.asyncio
async def test_memory_store_unreadable_record_raises_storage_error(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path / "memories")
    store.user_file("42").mkdir(parents=True)

    with pytest.raises(StorageError):
        await store.read(store.user_file("42"))


@pytest.mark.asyncio
async def test_memory_store_file_access_runs_off_the_event_loop_thread(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path / "memories")
    loop_thread = threading.get_ident()
    seen: list[int] = []

    def _record_write(path, content):
        seen.append(threading.get_ident())
        atomic_write_text(path, content)

    def _record_read(path, fallback):
        seen.append(threading.get_ident())
        return read_text_or(path, fallback)

    with patch("relaybot.memory.store.atomic_write_text", _record_write), \
            patch("relaybot.memory.store.read_text_or", _record_read):
        await store.write(store.user_file("42"), "- fact")
        assert await store.read(store.user_file("42")) == "- fact"

    assert len(seen) == 2
    assert loop_thread not in seen
