from __future__ import annotations

import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("ENV", "local")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from src.tokenmedia.db.db_models import Base  # noqa: E402
from src.tokenmedia.repositories.token_pipeline_repository import TokenPipelineRepository  # noqa: E402


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture()
def repository(session_factory) -> TokenPipelineRepository:
    return TokenPipelineRepository(session_factory)
