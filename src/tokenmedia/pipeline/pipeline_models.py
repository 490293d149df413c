"""Data structures for the token media pipeline."""

from __future__ import annotations

import dataclasses
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Callable, Iterator, Mapping

from ..domain.media import Media
from ..domain.tokens import ContractIdentifier, TokenIdentifier, TokenMetadata, TokenProperties


class StepState(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class PipelineState(StrEnum):
    """Run state machine; every stage up to ``PERSIST`` records a step."""

    CREATED = "created"
    METADATA_FETCH = "metadata_fetch"
    URL_DISCOVERY = "url_discovery"
    DOWNLOAD = "download"
    CLASSIFY = "classify"
    TRANSCODE_AUX = "transcode_aux"
    CACHE_COHERENCY = "cache_coherency"
    PERSIST = "persist"
    COMPLETED = "completed"
    ERRORED = "errored"


class ProcessingCause(StrEnum):
    REFRESH = "refresh"
    SYNC = "sync"
    TRANSFER = "transfer"
    WEBHOOK = "webhook"
    MANUAL = "manual"


@dataclass(slots=True)
class StepStatus:
    state: StepState = StepState.PENDING
    duration_ms: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.state.value, "duration_ms": self.duration_ms, "error": self.error}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "StepStatus":
        payload = payload or {}
        return cls(
            state=StepState(payload.get("state") or StepState.PENDING),
            duration_ms=payload.get("duration_ms"),
            error=payload.get("error"),
        )


STEP_NAMES = (
    "metadata_retrieval",
    "media_url_discovery",
    "download",
    "classification",
    "transcode_thumbnail",
    "persist",
)


@dataclass(slots=True)
class PipelineMetadata:
    metadata_retrieval: StepStatus = field(default_factory=StepStatus)
    media_url_discovery: StepStatus = field(default_factory=StepStatus)
    download: StepStatus = field(default_factory=StepStatus)
    classification: StepStatus = field(default_factory=StepStatus)
    transcode_thumbnail: StepStatus = field(default_factory=StepStatus)
    persist: StepStatus = field(default_factory=StepStatus)

    def step(self, name: str) -> StepStatus:
        if name not in STEP_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {name: self.step(name).to_dict() for name in STEP_NAMES}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "PipelineMetadata":
        payload = payload or {}
        return cls(**{name: StepStatus.from_dict(payload.get(name)) for name in STEP_NAMES})

    def errors(self) -> dict[str, str]:
        return {
            name: status.error or ""
            for name in STEP_NAMES
            if (status := self.step(name)).state == StepState.ERROR
        }

    @contextmanager
    def track(self, name: str) -> Iterator[StepStatus]:
        """Mark step ``name`` running, then success or error depending on the block."""

        status = self.step(name)
        status.state = StepState.RUNNING
        status.error = None
        started = time.monotonic()
        try:
            yield status
        except BaseException as exc:
            status.state = StepState.ERROR
            status.error = status.error or _describe(exc)
            raise
        else:
            if status.state == StepState.RUNNING:
                status.state = StepState.SUCCESS
        finally:
            status.duration_ms = int((time.monotonic() - started) * 1000)


def _describe(exc: BaseException) -> str:
    if isinstance(exc, (GeneratorExit, KeyboardInterrupt)):
        return type(exc).__name__
    if type(exc).__name__ == "CancelledError":
        return "cancelled"
    return str(exc) or type(exc).__name__


@dataclass(slots=True)
class JobOptions:
    """Per-run switches; builder methods return a modified copy."""

    profile_image_key: str | None = None
    refresh_metadata: bool = False
    starting_metadata: TokenMetadata | None = None
    is_spam_job: bool = False
    require_image: bool = False
    require_signed: Callable[[TokenMetadata], bool] | None = None
    image_keywords: tuple[str, ...] = ()
    animation_keywords: tuple[str, ...] = ()
    placeholder_image_url: str | None = None

    def with_profile_image_key(self, key: str) -> "JobOptions":
        return dataclasses.replace(self, profile_image_key=key)

    def with_refresh_metadata(self, refresh: bool = True) -> "JobOptions":
        return dataclasses.replace(self, refresh_metadata=refresh)

    def with_metadata(self, metadata: TokenMetadata) -> "JobOptions":
        return dataclasses.replace(self, starting_metadata=dict(metadata))

    def with_is_spam_job(self, is_spam: bool = True) -> "JobOptions":
        return dataclasses.replace(self, is_spam_job=is_spam)

    def with_require_image(self, required: bool = True) -> "JobOptions":
        return dataclasses.replace(self, require_image=required)

    def with_require_signed(self, predicate: Callable[[TokenMetadata], bool]) -> "JobOptions":
        return dataclasses.replace(self, require_signed=predicate)

    def with_keywords(self, image: list[str] | tuple[str, ...], animation: list[str] | tuple[str, ...]) -> "JobOptions":
        return dataclasses.replace(self, image_keywords=tuple(image), animation_keywords=tuple(animation))

    def with_placeholder_image_url(self, url: str) -> "JobOptions":
        return dataclasses.replace(self, placeholder_image_url=url)


@dataclass(slots=True)
class PipelineJob:
    run_id: str
    token: TokenIdentifier
    contract: ContractIdentifier
    cause: ProcessingCause
    options: JobOptions
    started_at: datetime
    state: PipelineState = PipelineState.CREATED
    pipeline_metadata: PipelineMetadata = field(default_factory=PipelineMetadata)
    metadata: TokenMetadata = field(default_factory=dict)
    image_url: str = ""
    animation_url: str = ""
    media: Media = field(default_factory=Media)
    error: Exception | None = None

    @property
    def name(self) -> str:
        """Artifact name shared by every object-store key of this job."""

        return self.contract.artifact_name()


@dataclass(slots=True)
class TokenPipelineResult:
    run_id: str
    token: TokenIdentifier
    media_id: str
    media: Media
    properties: TokenProperties
    pipeline_metadata: PipelineMetadata
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


__all__ = [
    "JobOptions",
    "PipelineJob",
    "PipelineMetadata",
    "PipelineState",
    "ProcessingCause",
    "STEP_NAMES",
    "StepState",
    "StepStatus",
    "TokenPipelineResult",
]
