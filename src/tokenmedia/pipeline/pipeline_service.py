"""Token media pipeline: metadata to cached, classified and persisted media."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator

import httpx
import structlog

from ..domain.deadlines import PipelineDeadlines, stage_budget
from ..domain.media import MediaType
from ..domain.tokens import (
    ContractIdentifier,
    TokenIdentifier,
    TokenMetadata,
    TokenProperties,
    find_name_and_description,
    get_value,
)
from ..exceptions import RepositoryError, StorageError
from ..media.media_classifier import MediaClassifier, Prediction, raw_format_to_media_type, sniff_media_type
from ..media.media_dimensions import DimensionsError
from ..media.media_discovery import Keywords, find_image_and_animation_urls
from ..media.media_transcoder import Transcoder, TranscodeError
from ..providers.metadata_finder import MetadataFinder
from ..providers.providers_errors import ProviderContractNotFoundError, ProviderFailedError
from ..repositories.token_pipeline_repository import (
    InsertTokenPipelineResultsParams,
    TokenMediaRecord,
    TokenPipelineRepository,
    new_id,
)
from ..storage.artifact_writer import ArtifactKind, ArtifactWriter, CacheResult
from ..transport.media_fetcher import MediaFetcher
from ..transport.transport_errors import (
    TransportError,
    TransportNotFoundError,
    TransportPermanentError,
    TransportTransientError,
)
from .pipeline_errors import (
    BadTokenError,
    FatalPipelineError,
    ImageResultRequiredError,
    NoMediaURLsError,
    PipelineError,
    RequiredSignedTokenError,
    TransientError,
)
from .pipeline_locks import ThrottleLocker
from .pipeline_media import MediaAssembler
from .pipeline_models import (
    JobOptions,
    PipelineJob,
    PipelineState,
    ProcessingCause,
    StepState,
    TokenPipelineResult,
)

logger = logging.getLogger(__name__)


def classify_failure(exc: BaseException) -> Exception:
    """Map an unexpected stage failure onto the pipeline taxonomy."""

    if isinstance(exc, (PipelineError, ProviderContractNotFoundError)):
        return exc
    if isinstance(exc, ProviderFailedError):
        error: Exception = TransientError(str(exc)) if exc.transient else BadTokenError(str(exc))
    elif isinstance(exc, (TransportNotFoundError, TransportPermanentError, DimensionsError, ValueError, KeyError, TypeError)):
        error = BadTokenError(str(exc) or type(exc).__name__)
    elif isinstance(exc, (TransportTransientError, StorageError, TranscodeError, RepositoryError, httpx.HTTPError, OSError)):
        error = TransientError(str(exc) or type(exc).__name__)
    elif isinstance(exc, asyncio.TimeoutError):
        error = TransientError("operation timed out")
    else:
        error = TransientError(f"{type(exc).__name__}: {exc}")
    error.__cause__ = exc
    return error


def resolve_media_type(metadata: TokenMetadata, image: CacheResult, video: CacheResult) -> MediaType:
    if video.media_type.is_valid():
        return video.media_type
    if image.media_type.is_valid():
        return image.media_type
    for key in ("media_type", "format"):
        fallback = raw_format_to_media_type(get_value(metadata, key))
        if fallback.is_valid():
            return fallback
    return MediaType.UNKNOWN


def _artifact_for(kind: ArtifactKind, media_type: MediaType, content_type: str | None) -> tuple[ArtifactKind, str, bool]:
    if kind == ArtifactKind.PROFILE_IMAGE:
        return kind, content_type or "application/octet-stream", False
    if media_type == MediaType.SVG:
        return ArtifactKind.SVG, "image/svg+xml", False
    if media_type == MediaType.BASE64BMP:
        return ArtifactKind.IMAGE, "image/bmp", False
    if media_type == MediaType.ANIMATION:
        return kind, content_type or "application/octet-stream", True
    return kind, content_type or "application/octet-stream", False


def _error_text(error: Exception) -> str:
    return f"{type(error).__name__}: {error}"


@dataclass(slots=True)
class TokenProcessor:
    """Runs one pipeline job per call under the per-token throttle lock."""

    repository: TokenPipelineRepository
    metadata_finder: MetadataFinder
    fetcher: MediaFetcher
    classifier: MediaClassifier
    writer: ArtifactWriter
    transcoder: Transcoder
    locker: ThrottleLocker
    deadlines: PipelineDeadlines = field(default_factory=PipelineDeadlines)
    processor_version: str = ""
    assembler: MediaAssembler | None = None
    log: logging.Logger = field(default_factory=lambda: logger)

    def __post_init__(self) -> None:
        if self.assembler is None:
            self.assembler = MediaAssembler(writer=self.writer, fetcher=self.fetcher, transcoder=self.transcoder)

    async def process_token(
        self,
        token: TokenIdentifier,
        contract: ContractIdentifier | None = None,
        cause: ProcessingCause | str = ProcessingCause.REFRESH,
        options: JobOptions | None = None,
    ) -> TokenPipelineResult:
        """Process ``token`` and persist exactly one run row.

        Raises :class:`BusyDuplicateError` when another run holds the token,
        :class:`ImageResultRequiredError` after persisting a run whose required
        image could not be cached, and :class:`FatalPipelineError` when the
        run could not be persisted. Other failures are reported through
        ``TokenPipelineResult.error``.
        """

        job = PipelineJob(
            run_id=new_id(),
            token=token,
            contract=contract or token.contract,
            cause=ProcessingCause(cause),
            options=options or JobOptions(),
            started_at=datetime.now(timezone.utc),
        )
        async with self.locker.hold(token.key()):
            with structlog.contextvars.bound_contextvars(
                run_id=job.run_id,
                token=token.key(),
                chain=int(token.chain),
                contract=token.contract_address,
                cause=job.cause.value,
            ):
                return await self._run(job)

    def _log_extra(self, job: PipelineJob, **extra: Any) -> dict[str, Any]:
        return {
            "run_id": job.run_id,
            "token": job.token.key(),
            "chain": int(job.token.chain),
            "contract": job.token.contract_address,
            "stage": job.state.value,
            "is_spam": job.options.is_spam_job,
            **extra,
        }

    async def _run(self, job: PipelineJob) -> TokenPipelineResult:
        self.log.info("pipeline.run.start", extra=self._log_extra(job, cause=job.cause.value))
        try:
            await asyncio.wait_for(self._create_media(job), timeout=self.deadlines.job.total_seconds())
        except asyncio.TimeoutError:
            job.error = TransientError(f"job deadline exceeded during {job.state.value}")
        except asyncio.CancelledError:
            job.error = TransientError(f"run cancelled during {job.state.value}")
            await self._persist_outcome(job)
            raise

        record = await self._persist_outcome(job)
        result = TokenPipelineResult(
            run_id=job.run_id,
            token=job.token,
            media_id=record.id,
            media=record.media,
            properties=self._properties(job),
            pipeline_metadata=job.pipeline_metadata,
            error=job.error,
        )
        self._report(job)
        if isinstance(job.error, ImageResultRequiredError):
            job.error.result = result
            raise job.error
        return result

    def _report(self, job: PipelineJob) -> None:
        if job.error is None:
            self.log.info(
                "pipeline.run.completed",
                extra=self._log_extra(job, media_type=job.media.media_type.value, media_url=job.media.media_url),
            )
            return
        quiet = job.options.is_spam_job or isinstance(job.error, (BadTokenError, ProviderContractNotFoundError))
        self.log.log(
            logging.WARNING if quiet else logging.ERROR,
            "pipeline.run.failed",
            extra=self._log_extra(
                job,
                error=str(job.error),
                error_type=type(job.error).__name__,
                failed_steps=job.pipeline_metadata.errors(),
            ),
        )

    async def _create_media(self, job: PipelineJob) -> None:
        try:
            await self._stages(job)
        except (PipelineError, ProviderContractNotFoundError) as exc:
            job.error = exc
        except Exception as exc:
            self.log.warning(
                "pipeline.stage.unexpected_error",
                extra=self._log_extra(job, error=str(exc), error_type=type(exc).__name__),
            )
            job.error = classify_failure(exc)

    async def _stages(self, job: PipelineJob) -> None:
        options = job.options
        metadata_step = job.pipeline_metadata

        job.state = PipelineState.METADATA_FETCH
        with metadata_step.track("metadata_retrieval"):
            job.metadata = await self._retrieve_metadata(job)
            if options.require_signed is not None and not options.require_signed(job.metadata):
                raise RequiredSignedTokenError("token is not signed by its platform")

        job.state = PipelineState.URL_DISCOVERY
        with metadata_step.track("media_url_discovery"):
            keywords = Keywords.for_chain(job.token.chain, options.image_keywords, options.animation_keywords)
            image_url, video_url = find_image_and_animation_urls(
                job.metadata, keywords, options.placeholder_image_url
            )
            if not image_url and not video_url:
                raise NoMediaURLsError("no media urls found in metadata")
            image_url, video_url = await self.classifier.predict_true_urls(image_url, video_url)
            job.image_url, job.animation_url = image_url, video_url

        job.state = PipelineState.DOWNLOAD
        with metadata_step.track("download") as step:
            image_result, video_result = await asyncio.gather(
                self._download_slot(job, ArtifactKind.IMAGE, image_url),
                self._download_slot(job, ArtifactKind.VIDEO, video_url),
            )
            failures = [
                f"{slot}: {_error_text(result.error)}"
                for slot, result in (("image", image_result), ("video", video_result))
                if result.error is not None
            ]
            if failures:
                step.state = StepState.ERROR
                step.error = "; ".join(failures)
        attempted = [result for url, result in ((image_url, image_result), (video_url, video_result)) if url]
        download_failed = bool(attempted) and all(result.error is not None for result in attempted)

        job.state = PipelineState.CLASSIFY
        with metadata_step.track("classification"):
            media_type = resolve_media_type(job.metadata, image_result, video_result)

        job.state = PipelineState.TRANSCODE_AUX
        with metadata_step.track("transcode_thumbnail") as step:
            errors = await self._transcode_aux(job, media_type, video_result)
            if errors:
                step.state = StepState.ERROR
                step.error = "; ".join(errors)

        job.state = PipelineState.CACHE_COHERENCY
        await self.writer.apply_coherency(job.name, image_result, video_result)

        image_missing = options.require_image and bool(image_url) and not image_result.cached
        if download_failed:
            cause = image_result.error or video_result.error
            if image_missing:
                raise ImageResultRequiredError(f"required image could not be cached: {cause}")
            raise classify_failure(cause)

        job.media = await self.assembler.assemble(media_type, job.name, image_url, video_url)
        if options.profile_image_key:
            job.media.profile_image_url = await self._profile_image(job, options.profile_image_key)
        if image_missing:
            raise ImageResultRequiredError(f"required image could not be cached: {image_result.error}")

    async def _retrieve_metadata(self, job: PipelineJob) -> TokenMetadata:
        options = job.options
        if options.starting_metadata and not options.refresh_metadata:
            return dict(options.starting_metadata)
        if not options.refresh_metadata:
            stored = await asyncio.to_thread(self.repository.get_token_by_identifiers, job.token)
            if stored is not None and stored.metadata:
                return stored.metadata
        try:
            return await self.metadata_finder.get_metadata(job.token)
        except ProviderFailedError as exc:
            if options.starting_metadata:
                self.log.info(
                    "pipeline.metadata.fallback_to_supplied",
                    extra=self._log_extra(job, error=str(exc)),
                )
                return dict(options.starting_metadata)
            raise

    def _budget(self, job: PipelineJob, deadline) -> float:
        return stage_budget(
            deadline,
            job_started_at=job.started_at,
            job_deadline=self.deadlines.job,
            now=datetime.now(timezone.utc),
        )

    async def _download_slot(self, job: PipelineJob, kind: ArtifactKind, url: str) -> CacheResult:
        if not url:
            return CacheResult()
        try:
            return await asyncio.wait_for(
                self._cache_url(job, kind, url),
                timeout=self._budget(job, self.deadlines.download),
            )
        except asyncio.TimeoutError:
            return CacheResult(error=TransientError(f"{kind.value} download timed out"))

    async def _cache_url(self, job: PipelineJob, kind: ArtifactKind, url: str) -> CacheResult:
        """Download ``url`` into the ``kind`` artifact and report what it turned out to be."""

        try:
            prediction = await self.classifier.predict(url)
        except TransportError as exc:
            self.log.info("pipeline.download.predict_failed", extra=self._log_extra(job, url=url, error=str(exc)))
            prediction = Prediction()
        if prediction.media_type == MediaType.HTML:
            # documents are rendered from their source, never cached
            return CacheResult(MediaType.HTML)

        try:
            stream = await self.fetcher.open(url)
        except TransportNotFoundError as exc:
            return CacheResult(MediaType.INVALID, error=exc)
        except TransportError as exc:
            return CacheResult(prediction.media_type, error=exc)

        media_type = prediction.media_type
        content_type = prediction.content_type
        async with stream:
            try:
                if not media_type.is_valid():
                    media_type, content_type = sniff_media_type(await stream.peek())
                if media_type in (MediaType.HTML, MediaType.JSON):
                    return CacheResult(media_type)
                target, store_type, gzip_encode = _artifact_for(kind, media_type, content_type or stream.content_type)
                key = await self.writer.write(
                    target,
                    job.name,
                    stream.iter_bytes(),
                    content_type=store_type,
                    gzip_encode=gzip_encode,
                )
            except (TransportError, StorageError) as exc:
                return CacheResult(media_type, error=exc)
        reported = MediaType.IMAGE if media_type == MediaType.BASE64BMP else media_type
        return CacheResult(reported, cached=True, content_type=store_type, key=key)

    async def _transcode_aux(self, job: PipelineJob, media_type: MediaType, video: CacheResult) -> list[str]:
        # derive only from a video cached by this run, never from a previous run's blob
        if media_type != MediaType.VIDEO or not video.cached:
            return []
        source = await self.writer.serving_url(ArtifactKind.VIDEO, job.name)
        if not source:
            return []
        results = await asyncio.gather(
            self.transcoder.extract_thumbnail(
                source,
                self._sink(ArtifactKind.THUMBNAIL, job.name, "image/jpeg"),
                timeout=self._budget(job, min(self.deadlines.thumbnail, self.deadlines.transcode)),
            ),
            self.transcoder.make_live_preview(
                source,
                self._sink(ArtifactKind.LIVE_RENDER, job.name, "video/mp4"),
                timeout=self._budget(job, min(self.deadlines.live_preview, self.deadlines.transcode)),
            ),
            return_exceptions=True,
        )
        errors = []
        for label, outcome in zip(("thumbnail", "liverender"), results):
            if isinstance(outcome, Exception):
                self.log.info(
                    "pipeline.transcode.failed",
                    extra=self._log_extra(job, artifact=label, error=str(outcome)),
                )
                errors.append(f"{label}: {_error_text(outcome)}")
        return errors

    def _sink(self, kind: ArtifactKind, name: str, content_type: str):
        async def sink(chunks: AsyncIterator[bytes]) -> str:
            return await self.writer.write(kind, name, chunks, content_type=content_type)

        return sink

    async def _profile_image(self, job: PipelineJob, key: str) -> str:
        value = get_value(job.metadata, key)
        if not isinstance(value, str) or not value.strip():
            return ""
        result = await self._download_slot(job, ArtifactKind.PROFILE_IMAGE, value.strip())
        if not result.cached or not result.media_type.is_image_like():
            self.log.info(
                "pipeline.profile_image.skipped",
                extra=self._log_extra(
                    job,
                    media_type=result.media_type.value,
                    error=str(result.error) if result.error else None,
                ),
            )
            return ""
        try:
            return await self.writer.serving_url(ArtifactKind.PROFILE_IMAGE, job.name)
        except StorageError as exc:
            self.log.info(
                "pipeline.profile_image.unavailable",
                extra=self._log_extra(job, error=str(exc)),
            )
            return ""

    def _properties(self, job: PipelineJob) -> TokenProperties:
        name, description = find_name_and_description(job.metadata)
        media = job.media
        return TokenProperties(
            has_metadata=bool(job.metadata),
            has_primary_media=media.is_servable(),
            has_thumbnail=bool(media.thumbnail_url),
            has_live_render=bool(media.live_preview_url),
            has_dimensions=media.dimensions.valid,
            has_name=bool(name),
            has_description=bool(description),
        )

    async def _persist_outcome(self, job: PipelineJob) -> TokenMediaRecord:
        job.state = PipelineState.PERSIST
        with job.pipeline_metadata.track("persist"):
            name, description = find_name_and_description(job.metadata)
            params = InsertTokenPipelineResultsParams(
                run_id=job.run_id,
                token=job.token,
                processing_cause=job.cause.value,
                media_id=new_id(),
                media=job.media,
                metadata=job.metadata,
                name=name,
                description=description,
                properties=self._properties(job),
                processor_version=self.processor_version,
                error=_error_text(job.error) if job.error is not None else None,
            )
        if job.options.is_spam_job:
            params.is_spam = True
        params.pipeline_metadata = job.pipeline_metadata.to_dict()

        persist = asyncio.ensure_future(asyncio.to_thread(self.repository.insert_token_pipeline_results, params))
        try:
            record = await asyncio.wait_for(asyncio.shield(persist), timeout=self.deadlines.persist.total_seconds())
        except asyncio.TimeoutError as exc:
            job.state = PipelineState.ERRORED
            raise FatalPipelineError("persisting the run timed out") from exc
        except RepositoryError as exc:
            job.state = PipelineState.ERRORED
            self.log.error("pipeline.persist.failed", extra=self._log_extra(job, error=str(exc)))
            raise FatalPipelineError(f"persisting the run failed: {exc}") from exc
        job.state = PipelineState.ERRORED if job.error is not None else PipelineState.COMPLETED
        return record


__all__ = ["TokenProcessor", "classify_failure", "resolve_media_type"]
