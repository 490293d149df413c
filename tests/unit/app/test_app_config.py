from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError
from sqlalchemy import inspect

from src.tokenmedia.config import AppConfig, load_config
from src.tokenmedia.domain.tokens import Chain

pytestmark = pytest.mark.unit

COMPLETE = dict(
    gcloud_token_content_bucket="prod-token-content",
    token_processing_url="https://tokenprocessing.test",
    token_processing_queue="projects/p/locations/l/queues/token-processing",
    sentry_dsn="https://key@sentry.test/1",
    alchemy_api_url="https://eth-mainnet.alchemy.test/nft/v3/key",
    alchemy_webhook_secret="hook-secret",
)


def test_local_environment_fills_development_defaults() -> None:
    settings = AppConfig(env="local")

    assert settings.is_local
    assert settings.gcloud_token_content_bucket == "dev-token-content"
    assert settings.token_processing_url == "http://localhost:6500"


def test_non_local_environment_requires_upstream_configuration() -> None:
    with pytest.raises(ValidationError) as info:
        AppConfig(env="production")

    message = str(info.value)
    for key in ("GCLOUD_TOKEN_CONTENT_BUCKET", "TOKEN_PROCESSING_QUEUE", "SENTRY_DSN", "ALCHEMY_WEBHOOK_SECRET*"):
        assert key in message


def test_non_local_environment_accepts_complete_configuration() -> None:
    settings = AppConfig(env="production", **COMPLETE)

    assert not settings.is_local
    assert settings.webhook_secrets() == ["hook-secret"]


def test_indexer_can_stand_in_for_alchemy() -> None:
    values = {**COMPLETE, "alchemy_api_url": None, "indexer_host": "https://indexer.test"}

    settings = AppConfig(env="production", **values)

    assert settings.alchemy_api_urls() == {}


def test_skip_queues_and_urls_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("CLOUD_TASKS_SKIP_QUEUES", " token-processing, ,wallets ")
    monkeypatch.setenv("ALCHEMY_BASE_API_URL", "https://base.alchemy.test")

    settings = AppConfig(env="local")

    assert settings.skip_queues == frozenset({"token-processing", "wallets"})
    assert settings.alchemy_api_urls() == {Chain.BASE: "https://base.alchemy.test"}


def test_deadlines_follow_timeouts() -> None:
    deadlines = AppConfig(env="local", job_timeout_seconds=120, persist_timeout_seconds=5).deadlines()

    assert deadlines.job == timedelta(minutes=2)
    assert deadlines.persist == timedelta(seconds=5)


def test_non_positive_timeout_is_rejected() -> None:
    with pytest.raises(ValidationError):
        AppConfig(env="local", job_timeout_seconds=0)


def test_load_config_creates_schema() -> None:
    config = load_config(AppConfig(env="local", database_url="sqlite:///:memory:"))

    tables = set(inspect(config.engine).get_table_names())
    assert {"tokens", "token_medias", "token_pipeline_runs", "splits", "token_ownerships"} <= tables
