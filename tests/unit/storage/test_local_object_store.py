from __future__ import annotations

import asyncio
from pathlib import Path
from typing import AsyncIterator

import pytest

from src.tokenmedia.exceptions import StorageError
from src.tokenmedia.storage.object_store import LocalObjectStore

pytestmark = pytest.mark.unit


async def _chunks(*parts: bytes) -> AsyncIterator[bytes]:
    for part in parts:
        yield part


async def _failing() -> AsyncIterator[bytes]:
    yield b"partial"
    raise OSError("disk full")


@pytest.mark.asyncio
async def test_write_read_and_metadata(tmp_path: Path) -> None:
    store = LocalObjectStore(root=tmp_path, bucket="media")

    size = await store.write(
        "image-0-0xabc",
        _chunks(b"ab", b"cd"),
        content_type="image/png",
        cache_control="no-cache, no-store",
    )

    assert size == 4
    assert store.read("image-0-0xabc") == b"abcd"
    assert store.metadata("image-0-0xabc")["content_type"] == "image/png"
    assert await store.exists("image-0-0xabc")
    assert store.public_url("image-0-0xabc") == "http://localhost:6500/media/media/image-0-0xabc"


@pytest.mark.asyncio
async def test_failed_write_keeps_previous_object(tmp_path: Path) -> None:
    store = LocalObjectStore(root=tmp_path, bucket="media")
    await store.write("svg-0-0xabc", _chunks(b"old"), content_type="image/svg+xml", cache_control="x")

    with pytest.raises(StorageError, match="disk full"):
        await store.write("svg-0-0xabc", _failing(), content_type="image/svg+xml", cache_control="x")

    assert store.read("svg-0-0xabc") == b"old"
    assert not [path for path in (tmp_path / "media").iterdir() if path.name.endswith(".part")]


@pytest.mark.asyncio
async def test_delete_is_idempotent(tmp_path: Path) -> None:
    store = LocalObjectStore(root=tmp_path, bucket="media")
    await store.write("video-0-0xabc", _chunks(b"v"), content_type="video/mp4", cache_control="x")

    await store.delete("video-0-0xabc")
    await store.delete("video-0-0xabc")

    assert not await store.exists("video-0-0xabc")
    assert store.metadata("video-0-0xabc") == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["", "../escape", ".hidden", "a/b"])
async def test_invalid_keys_are_rejected(tmp_path: Path, key: str) -> None:
    store = LocalObjectStore(root=tmp_path, bucket="media")

    with pytest.raises(StorageError, match="invalid object key"):
        await store.exists(key)


@pytest.mark.asyncio
async def test_file_io_runs_off_the_event_loop(tmp_path: Path, monkeypatch) -> None:
    store = LocalObjectStore(root=tmp_path, bucket="media")
    offloaded: list[str] = []
    to_thread = asyncio.to_thread

    async def recording_to_thread(func, /, *args, **kwargs):
        offloaded.append(getattr(func, "__name__", repr(func)))
        return await to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

    await store.write("image-0-0xabc", _chunks(b"ab", b"cd"), content_type="image/png", cache_control="x")
    assert await store.exists("image-0-0xabc")
    await store.delete("image-0-0xabc")

    assert offloaded.count("write") == 2
    assert {"open", "close", "_commit", "exists", "_remove"} <= set(offloaded)
