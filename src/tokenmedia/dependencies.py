"""Dependency wiring helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from fastapi import FastAPI
from redis.asyncio import Redis

from .config import RuntimeConfig
from .media.media_classifier import MediaClassifier
from .media.media_transcoder import FFmpegTranscoder, Transcoder
from .pipeline.pipeline_locks import InMemoryLockBackend, LockBackend, RedisLockBackend, ThrottleLocker
from .pipeline.pipeline_service import TokenProcessor
from .providers.metadata_finder import MetadataFinder
from .providers.providers_factory import create_providers
from .repositories.token_pipeline_repository import TokenPipelineRepository
from .storage.artifact_writer import ArtifactWriter
from .storage.gcs_object_store import GcsObjectStore
from .storage.object_store import LocalObjectStore, ObjectStore
from .tasks.task_client import TaskClient
from .transport.media_fetcher import MediaFetcher
from .transport.transport_http import HttpTransport

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ServiceContainer:
    http_client: httpx.AsyncClient
    repository: TokenPipelineRepository
    processor: TokenProcessor
    task_client: TaskClient
    redis: Redis | None = None

    async def aclose(self) -> None:
        await self.http_client.aclose()
        if self.redis is not None:
            await self.redis.aclose()


def create_http_client() -> httpx.AsyncClient:
    """Shared client; keep-alive is off since media origins are many and short-lived."""

    return httpx.AsyncClient(
        limits=httpx.Limits(max_keepalive_connections=0),
        follow_redirects=True,
        headers={"User-Agent": "tokenmedia/1.0"},
    )


def create_object_store(config: RuntimeConfig, client: httpx.AsyncClient) -> ObjectStore:
    settings = config.settings
    if settings.is_local and not settings.gcloud_access_token:
        return LocalObjectStore(root=settings.media_root, bucket=settings.gcloud_token_content_bucket)
    return GcsObjectStore(
        client=client,
        bucket=settings.gcloud_token_content_bucket,
        access_token=settings.gcloud_access_token,
        public_host=settings.storage_host,
    )


def create_lock_backend(config: RuntimeConfig) -> tuple[LockBackend, Redis | None]:
    if config.settings.redis_url:
        redis = Redis.from_url(config.settings.redis_url)
        return RedisLockBackend(redis), redis
    logger.info("dependencies.lock.in_memory")
    return InMemoryLockBackend(), None


def build_services(
    config: RuntimeConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
    object_store: ObjectStore | None = None,
    transcoder: Transcoder | None = None,
    lock_backend: LockBackend | None = None,
) -> ServiceContainer:
    """Assemble the pipeline; keyword overrides replace the external edges."""

    settings = config.settings
    client = http_client or create_http_client()
    redis: Redis | None = None
    if lock_backend is None:
        lock_backend, redis = create_lock_backend(config)

    fetcher = MediaFetcher(http=HttpTransport(client), ipfs_url=settings.ipfs_url, arweave_url=settings.arweave_url)
    repository = TokenPipelineRepository(config.session_factory)
    deadlines = settings.deadlines()
    providers = create_providers(
        client,
        alchemy_api_urls=settings.alchemy_api_urls(),
        indexer_host=settings.indexer_host,
    )
    processor = TokenProcessor(
        repository=repository,
        metadata_finder=MetadataFinder(providers),
        fetcher=fetcher,
        classifier=MediaClassifier(fetcher),
        writer=ArtifactWriter(object_store or create_object_store(config, client)),
        transcoder=transcoder or FFmpegTranscoder(ffmpeg_path=settings.ffmpeg_path, ffprobe_path=settings.ffprobe_path),
        locker=ThrottleLocker(lock_backend, ttl_seconds=deadlines.lock_ttl.total_seconds()),
        deadlines=deadlines,
        processor_version=settings.version,
    )
    task_client = TaskClient.create(
        client,
        direct_dispatch=settings.cloud_tasks_direct_dispatch_enabled,
        queue_host=settings.task_queue_host,
        access_token=settings.gcloud_access_token,
        skip_queues=settings.skip_queues,
        token_processing_url=settings.token_processing_url,
        token_processing_queue=settings.token_processing_queue,
        token_processing_secret=settings.token_processing_secret,
    )
    return ServiceContainer(
        http_client=client,
        repository=repository,
        processor=processor,
        task_client=task_client,
        redis=redis,
    )


def attach_services(app: FastAPI, config: RuntimeConfig, services: ServiceContainer) -> None:
    app.state.config = config
    app.state.services = services
    app.state.token_processor = services.processor
    app.state.token_repository = services.repository
    app.state.task_client = services.task_client
    app.state.task_secret = config.settings.token_processing_secret
    app.state.webhook_secrets = config.settings.webhook_secrets()


__all__ = [
    "ServiceContainer",
    "attach_services",
    "build_services",
    "create_http_client",
    "create_lock_backend",
    "create_object_store",
]
