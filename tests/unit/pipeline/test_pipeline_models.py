from __future__ import annotations

import asyncio

import httpx
import pytest

from src.tokenmedia.domain.media import MediaType
from src.tokenmedia.exceptions import DatabaseOperationError, StorageError
from src.tokenmedia.media.media_dimensions import DimensionsError
from src.tokenmedia.media.media_transcoder import TranscodeError
from src.tokenmedia.pipeline.pipeline_errors import BadTokenError, NoMediaURLsError, TransientError
from src.tokenmedia.pipeline.pipeline_models import JobOptions, PipelineMetadata, StepState
from src.tokenmedia.pipeline.pipeline_service import classify_failure, resolve_media_type
from src.tokenmedia.providers.providers_errors import ProviderContractNotFoundError, ProviderFailedError
from src.tokenmedia.storage.artifact_writer import CacheResult
from src.tokenmedia.transport.transport_errors import TransportNotFoundError, TransportTransientError

pytestmark = pytest.mark.unit


def test_track_marks_success_and_duration() -> None:
    metadata = PipelineMetadata()

    with metadata.track("download"):
        pass

    assert metadata.download.state is StepState.SUCCESS
    assert metadata.download.duration_ms is not None
    assert metadata.persist.state is StepState.PENDING


def test_track_records_error_and_reraises() -> None:
    metadata = PipelineMetadata()

    with pytest.raises(NoMediaURLsError):
        with metadata.track("media_url_discovery"):
            raise NoMediaURLsError("no media urls found in metadata")

    assert metadata.media_url_discovery.state is StepState.ERROR
    assert metadata.errors() == {"media_url_discovery": "no media urls found in metadata"}


def test_track_keeps_error_set_inside_block() -> None:
    metadata = PipelineMetadata()

    with metadata.track("transcode_thumbnail") as step:
        step.state = StepState.ERROR
        step.error = "thumbnail: TranscodeError: exit 1"

    assert metadata.transcode_thumbnail.state is StepState.ERROR
    assert metadata.transcode_thumbnail.error == "thumbnail: TranscodeError: exit 1"


def test_track_records_cancellation() -> None:
    metadata = PipelineMetadata()

    with pytest.raises(asyncio.CancelledError):
        with metadata.track("download"):
            raise asyncio.CancelledError()

    assert metadata.download.error == "cancelled"


def test_pipeline_metadata_round_trip_and_unknown_steps() -> None:
    metadata = PipelineMetadata()
    with metadata.track("classification"):
        pass

    restored = PipelineMetadata.from_dict(metadata.to_dict())

    assert restored.classification.state is StepState.SUCCESS
    with pytest.raises(KeyError):
        metadata.step("rendering")


def test_job_options_builders_return_copies() -> None:
    base = JobOptions()

    updated = (
        base.with_refresh_metadata()
        .with_require_image()
        .with_is_spam_job()
        .with_profile_image_key("pfp")
        .with_keywords(["preview"], ["render"])
        .with_placeholder_image_url("https://x.test/p.png")
        .with_metadata({"image": "x"})
    )

    assert base == JobOptions()
    assert updated.refresh_metadata and updated.require_image and updated.is_spam_job
    assert updated.profile_image_key == "pfp"
    assert updated.image_keywords == ("preview",)
    assert updated.starting_metadata == {"image": "x"}


@pytest.mark.parametrize(
    ("raised", "expected"),
    [
        (ProviderFailedError("502"), TransientError),
        (ProviderFailedError("bad request", transient=False), BadTokenError),
        (TransportNotFoundError("404"), BadTokenError),
        (TransportTransientError("reset"), TransientError),
        (DimensionsError("no size"), BadTokenError),
        (StorageError("bucket down"), TransientError),
        (TranscodeError("exit 1"), TransientError),
        (DatabaseOperationError("locked"), TransientError),
        (httpx.ReadTimeout("slow"), TransientError),
        (asyncio.TimeoutError(), TransientError),
        (ValueError("bad json"), BadTokenError),
        (RuntimeError("surprise"), TransientError),
    ],
)
def test_classify_failure(raised: Exception, expected: type[Exception]) -> None:
    classified = classify_failure(raised)

    assert type(classified) is expected
    assert classified.__cause__ is raised


def test_classify_failure_passes_taxonomy_errors_through() -> None:
    error = NoMediaURLsError("none")
    missing = ProviderContractNotFoundError("unknown contract")

    assert classify_failure(error) is error
    assert classify_failure(missing) is missing


def test_resolve_media_type_prefers_video_then_image_then_metadata() -> None:
    image = CacheResult(MediaType.IMAGE, cached=True)
    video = CacheResult(MediaType.VIDEO, cached=True)

    assert resolve_media_type({}, image, video) is MediaType.VIDEO
    assert resolve_media_type({}, image, CacheResult(MediaType.INVALID)) is MediaType.IMAGE
    assert resolve_media_type({"format": "mp4"}, CacheResult(), CacheResult()) is MediaType.VIDEO
    assert resolve_media_type({"media_type": "audio/mpeg"}, CacheResult(), CacheResult()) is MediaType.AUDIO
    assert resolve_media_type({}, CacheResult(), CacheResult()) is MediaType.UNKNOWN
