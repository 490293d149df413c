"""ffmpeg/ffprobe invocations for thumbnails, live previews and dimensions."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol

from ..domain.media import Dimensions

logger = logging.getLogger(__name__)

Sink = Callable[[AsyncIterator[bytes]], Awaitable[Any]]

THUMBNAIL_TIMEOUT = 60.0
LIVE_PREVIEW_TIMEOUT = 120.0
PROBE_TIMEOUT = 30.0
LIVE_PREVIEW_SECONDS = 5
LIVE_PREVIEW_WIDTH = 720


class TranscodeError(Exception):
    """ffmpeg failed, timed out or produced no output."""


class Transcoder(Protocol):
    async def extract_thumbnail(self, url: str, sink: Sink, *, timeout: float = THUMBNAIL_TIMEOUT) -> Any:
        ...

    async def make_live_preview(self, url: str, sink: Sink, *, timeout: float = LIVE_PREVIEW_TIMEOUT) -> Any:
        ...

    async def probe_dimensions(self, url: str) -> Dimensions:
        ...


def thumbnail_args(url: str) -> list[str]:
    return [
        "-hide_banner",
        "-loglevel",
        "error",
        "-ss",
        "00:00:00.000",
        "-i",
        url,
        "-frames:v",
        "1",
        "-c:v",
        "mjpeg",
        "-f",
        "image2",
        "pipe:1",
    ]


def live_preview_args(url: str) -> list[str]:
    return [
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        url,
        "-t",
        str(LIVE_PREVIEW_SECONDS),
        "-vf",
        f"scale={LIVE_PREVIEW_WIDTH}:-2",
        "-c:a",
        "copy",
        "-movflags",
        "frag_keyframe+empty_moov",
        "-f",
        "mp4",
        "pipe:1",
    ]


def probe_args(url: str) -> list[str]:
    return ["-v", "error", "-print_format", "json", "-show_streams", url]


def dimensions_from_probe(payload: bytes | str) -> Dimensions:
    """First stream with positive width and height; empty dimensions otherwise."""

    try:
        data = json.loads(payload or "{}")
    except ValueError:
        return Dimensions()
    for stream in data.get("streams") or []:
        width = int(stream.get("width") or 0)
        height = int(stream.get("height") or 0)
        if width > 0 and height > 0:
            return Dimensions(width=width, height=height)
    return Dimensions()


@dataclass(slots=True)
class FFmpegTranscoder:
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    chunk_size: int = 64 * 1024
    probe_timeout: float = PROBE_TIMEOUT
    log: logging.Logger = field(default_factory=lambda: logger)

    async def extract_thumbnail(self, url: str, sink: Sink, *, timeout: float = THUMBNAIL_TIMEOUT) -> Any:
        """Pipe the first frame of ``url`` as JPEG into ``sink``."""

        return await self._pipe(thumbnail_args(url), sink, timeout=timeout, operation="thumbnail")

    async def make_live_preview(self, url: str, sink: Sink, *, timeout: float = LIVE_PREVIEW_TIMEOUT) -> Any:
        """Pipe a short fragmented MP4 preview of ``url`` into ``sink``."""

        return await self._pipe(live_preview_args(url), sink, timeout=timeout, operation="liverender")

    async def probe_dimensions(self, url: str) -> Dimensions:
        try:
            process = await asyncio.create_subprocess_exec(
                self.ffprobe_path,
                *probe_args(url),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            self.log.warning("media.probe.binary_missing", extra={"binary": self.ffprobe_path})
            return Dimensions()
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            self.log.warning("media.probe.timeout", extra={"url": url, "timeout": self.probe_timeout})
            return Dimensions()
        if process.returncode != 0:
            self.log.info(
                "media.probe.failed",
                extra={"url": url, "returncode": process.returncode, "stderr": stderr.decode("utf-8", "replace")[-500:]},
            )
            return Dimensions()
        dimensions = dimensions_from_probe(stdout)
        if not dimensions.valid:
            self.log.info("media.probe.no_dimensions", extra={"url": url})
        return dimensions

    async def _pipe(self, args: list[str], sink: Sink, *, timeout: float, operation: str) -> Any:
        try:
            process = await asyncio.create_subprocess_exec(
                self.ffmpeg_path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise TranscodeError(f"{self.ffmpeg_path} binary not found") from exc

        stderr_task = asyncio.create_task(process.stderr.read())
        try:
            return await asyncio.wait_for(
                sink(self._stdout_chunks(process, stderr_task, operation)),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TranscodeError(f"{operation} timed out after {timeout}s") from exc
        finally:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
            if not stderr_task.done():
                stderr_task.cancel()

    async def _stdout_chunks(
        self,
        process: asyncio.subprocess.Process,
        stderr_task: "asyncio.Task[bytes]",
        operation: str,
    ) -> AsyncIterator[bytes]:
        total = 0
        while True:
            chunk = await process.stdout.read(self.chunk_size)
            if not chunk:
                break
            total += len(chunk)
            yield chunk
        returncode = await process.wait()
        stderr = await stderr_task
        if returncode != 0:
            raise TranscodeError(
                f"{operation} exited with {returncode}: {stderr.decode('utf-8', 'replace')[-500:]}"
            )
        if total == 0:
            raise TranscodeError(f"{operation} produced no output")


__all__ = [
    "FFmpegTranscoder",
    "LIVE_PREVIEW_TIMEOUT",
    "THUMBNAIL_TIMEOUT",
    "Sink",
    "TranscodeError",
    "Transcoder",
    "dimensions_from_probe",
    "live_preview_args",
    "probe_args",
    "thumbnail_args",
]
