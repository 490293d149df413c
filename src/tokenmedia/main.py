"""FastAPI application entry points.

Run with ``uvicorn --factory tokenmedia.main:create_app`` for token processing
and ``uvicorn --factory tokenmedia.main:create_streamer_app`` for webhooks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .config import RuntimeConfig, load_config
from .dependencies import ServiceContainer, attach_services, build_services
from .logging import configure_logging
from .pipeline.pipeline_api import router as pipeline_router
from .webhooks.webhook_api import register_webhook_handlers
from .webhooks.webhook_api import router as webhook_router


def _lifespan(services: ServiceContainer):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await services.aclose()

    return lifespan


def _prepare(config: RuntimeConfig | None, services: ServiceContainer | None) -> tuple[RuntimeConfig, ServiceContainer]:
    configure_logging()
    cfg = config or load_config()
    return cfg, services or build_services(cfg)


def create_app(config: RuntimeConfig | None = None, services: ServiceContainer | None = None) -> FastAPI:
    """Token processing service: task-queue targets running the pipeline."""

    cfg, container = _prepare(config, services)
    app = FastAPI(title="tokenprocessing", lifespan=_lifespan(container))
    attach_services(app, cfg, container)
    app.include_router(pipeline_router)
    return app


def create_streamer_app(config: RuntimeConfig | None = None, services: ServiceContainer | None = None) -> FastAPI:
    """Webhook ingress service."""

    cfg, container = _prepare(config, services)
    app = FastAPI(title="streamer", lifespan=_lifespan(container))
    attach_services(app, cfg, container)
    register_webhook_handlers(app)
    app.include_router(webhook_router)
    return app


__all__ = ["create_app", "create_streamer_app"]
