"""Application wiring for route tests: real containers with in-memory edges."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import FastAPI

from src.tokenmedia.config import AppConfig, RuntimeConfig, load_config
from src.tokenmedia.dependencies import ServiceContainer, build_services
from src.tokenmedia.pipeline.pipeline_errors import PipelineError
from src.tokenmedia.pipeline.pipeline_locks import InMemoryLockBackend
from src.tokenmedia.pipeline.pipeline_models import TokenPipelineResult
from src.tokenmedia.tasks.task_client import Dispatcher, TaskClient
from src.tokenmedia.tasks.task_models import HttpTask
from tests.mocks.http import MockRoutes
from tests.mocks.media import FakeTranscoder
from tests.mocks.storage import InMemoryObjectStore

WORKER_URL = "https://worker.test"
QUEUE = "projects/test/locations/here/queues/token-processing"


class RecordingDispatcher(Dispatcher):
    def __init__(self) -> None:
        self.sent: list[tuple[str, HttpTask]] = []

    async def send(self, queue: str, task: HttpTask) -> None:
        self.sent.append((queue, task))


class FakeProcessor:
    """Stands in for ``TokenProcessor``; answers from a callable per token."""

    def __init__(self, outcome: Callable[[Any], TokenPipelineResult | PipelineError]) -> None:
        self.outcome = outcome
        self.calls: list[tuple[Any, Any, Any, Any]] = []

    async def process_token(self, token, contract=None, cause="refresh", options=None) -> TokenPipelineResult:
        self.calls.append((token, contract, cause, options))
        result = self.outcome(token)
        if isinstance(result, Exception):
            raise result
        return result


def build_test_services(
    routes: MockRoutes | None = None,
    *,
    store: InMemoryObjectStore | None = None,
    transcoder: FakeTranscoder | None = None,
    **settings: Any,
) -> tuple[RuntimeConfig, ServiceContainer]:
    config = load_config(AppConfig(env="local", database_url="sqlite:///:memory:", **settings))
    services = build_services(
        config,
        http_client=(routes or MockRoutes()).client(),
        object_store=store or InMemoryObjectStore(),
        transcoder=transcoder or FakeTranscoder(),
        lock_backend=InMemoryLockBackend(),
    )
    return config, services


def build_test_app(
    factory: Callable[..., FastAPI],
    *,
    processor: FakeProcessor | None = None,
    dispatcher: Dispatcher | None = None,
    **settings: Any,
) -> tuple[FastAPI, RuntimeConfig]:
    config, services = build_test_services(**settings)
    if dispatcher is not None:
        services.task_client = TaskClient(
            dispatcher=dispatcher,
            token_processing_url=WORKER_URL,
            token_processing_queue=QUEUE,
            token_processing_secret=config.settings.token_processing_secret,
        )
    app = factory(config, services)
    if processor is not None:
        app.state.token_processor = processor
    return app, config
