from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator

import pytest

from src.tokenmedia.domain.media import Dimensions
from src.tokenmedia.media import media_transcoder
from src.tokenmedia.media.media_transcoder import (
    FFmpegTranscoder,
    TranscodeError,
    dimensions_from_probe,
    thumbnail_args,
)

pytestmark = pytest.mark.unit


class DummyStream:
    def __init__(self, data: bytes) -> None:
        self._data = data

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data)
        chunk, self._data = self._data[:size], self._data[size:]
        return chunk


class DummyProcess:
    def __init__(self, stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> None:
        self.stdout = DummyStream(stdout)
        self.stderr = DummyStream(stderr)
        self._exit_code = returncode
        self.returncode: int | None = None
        self.killed = False

    async def wait(self) -> int:
        self.returncode = self._exit_code
        return self._exit_code

    async def communicate(self) -> tuple[bytes, bytes]:
        await self.wait()
        return await self.stdout.read(), await self.stderr.read()

    def kill(self) -> None:
        self.killed = True


def _patch_exec(monkeypatch: pytest.MonkeyPatch, process: DummyProcess | Exception) -> list[tuple]:
    calls: list[tuple] = []

    async def fake_exec(*args, **kwargs):
        calls.append(args)
        if isinstance(process, Exception):
            raise process
        return process

    monkeypatch.setattr(media_transcoder.asyncio, "create_subprocess_exec", fake_exec)
    return calls


async def _collect(chunks: AsyncIterator[bytes]) -> bytes:
    buffer = bytearray()
    async for chunk in chunks:
        buffer.extend(chunk)
    return bytes(buffer)


@pytest.mark.asyncio
async def test_thumbnail_pipes_stdout_into_sink(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _patch_exec(monkeypatch, DummyProcess(stdout=b"\xff\xd8\xff" + b"j" * 100))
    transcoder = FFmpegTranscoder(ffmpeg_path="/usr/bin/ffmpeg", chunk_size=16)

    output = await transcoder.extract_thumbnail("https://cdn.test/video.mp4", _collect)

    assert output.startswith(b"\xff\xd8\xff") and len(output) == 103
    assert calls[0] == ("/usr/bin/ffmpeg", *thumbnail_args("https://cdn.test/video.mp4"))


@pytest.mark.asyncio
async def test_non_zero_exit_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_exec(monkeypatch, DummyProcess(stdout=b"partial", stderr=b"Invalid data found", returncode=1))

    with pytest.raises(TranscodeError, match="Invalid data found"):
        await FFmpegTranscoder().make_live_preview("https://cdn.test/v.mp4", _collect)


@pytest.mark.asyncio
async def test_empty_output_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_exec(monkeypatch, DummyProcess(stdout=b""))

    with pytest.raises(TranscodeError, match="no output"):
        await FFmpegTranscoder().extract_thumbnail("https://cdn.test/v.mp4", _collect)


@pytest.mark.asyncio
async def test_missing_binary_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_exec(monkeypatch, FileNotFoundError("ffmpeg"))

    with pytest.raises(TranscodeError, match="not found"):
        await FFmpegTranscoder().extract_thumbnail("https://cdn.test/v.mp4", _collect)


@pytest.mark.asyncio
async def test_slow_sink_times_out_and_kills_process(monkeypatch: pytest.MonkeyPatch) -> None:
    process = DummyProcess(stdout=b"data")
    _patch_exec(monkeypatch, process)

    async def stalled(chunks: AsyncIterator[bytes]) -> None:
        await asyncio.sleep(5)

    with pytest.raises(TranscodeError, match="timed out"):
        await FFmpegTranscoder().extract_thumbnail("https://cdn.test/v.mp4", stalled, timeout=0.01)
    assert process.killed


@pytest.mark.asyncio
async def test_probe_dimensions(monkeypatch: pytest.MonkeyPatch) -> None:
    probe = json.dumps({"streams": [{"codec_type": "audio"}, {"width": 1920, "height": 1080}]}).encode()
    _patch_exec(monkeypatch, DummyProcess(stdout=probe))

    assert await FFmpegTranscoder().probe_dimensions("https://cdn.test/v.mp4") == Dimensions(1920, 1080)


@pytest.mark.asyncio
async def test_probe_failure_returns_empty_dimensions(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_exec(monkeypatch, DummyProcess(stderr=b"boom", returncode=1))

    assert await FFmpegTranscoder().probe_dimensions("https://cdn.test/v.mp4") == Dimensions()


def test_dimensions_from_probe_ignores_garbage() -> None:
    assert dimensions_from_probe(b"not json") == Dimensions()
    assert dimensions_from_probe(b'{"streams": [{"width": 0, "height": 10}]}') == Dimensions()
