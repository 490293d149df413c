from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from src.tokenmedia.db.db_models import ContractModel, SplitModel
from src.tokenmedia.domain.media import Media, MediaType
from src.tokenmedia.domain.tokens import TokenProperties
from src.tokenmedia.main import create_app
from src.tokenmedia.pipeline.pipeline_errors import (
    BadTokenError,
    BusyDuplicateError,
    FatalPipelineError,
    ImageResultRequiredError,
    TransientError,
)
from src.tokenmedia.pipeline.pipeline_models import PipelineMetadata, ProcessingCause, TokenPipelineResult
from src.tokenmedia.repositories.token_pipeline_repository import new_id
from src.tokenmedia.tasks.task_models import basic_auth_header
from tests.mocks.app import FakeProcessor, build_test_app

pytestmark = pytest.mark.unit

MESSAGE = {"token_id": "0x1", "contract_address": "0xABC", "chain": 0}


def _result(token, error: Exception | None = None) -> TokenPipelineResult:
    return TokenPipelineResult(
        run_id="run-1",
        token=token,
        media_id="media-1",
        media=Media(media_type=MediaType.IMAGE, media_url="https://cdn.test/image-0-0xabc"),
        properties=TokenProperties(has_metadata=True),
        pipeline_metadata=PipelineMetadata(),
        error=error,
    )


def _client(outcome, **settings):
    processor = FakeProcessor(outcome)
    app, config = build_test_app(create_app, processor=processor, **settings)
    return TestClient(app), processor, config


def test_successful_run_returns_media() -> None:
    client, processor, _ = _client(lambda token: _result(token))

    with client:
        response = client.post("/media/process/token", json=MESSAGE)

    assert response.status_code == 200
    body = response.json()
    assert body["token"] == "1-0xabc-0"
    assert body["run_id"] == "run-1"
    assert body["media"]["media_url"] == "https://cdn.test/image-0-0xabc"
    assert body["error"] is None
    token, contract, cause, options = processor.calls[0]
    assert contract == token.contract
    assert cause is ProcessingCause.REFRESH
    assert options.require_signed is None


def test_busy_duplicate_maps_to_429() -> None:
    client, _, _ = _client(lambda token: BusyDuplicateError(token.key()))

    with client:
        response = client.post("/media/process/token", json=MESSAGE)

    assert response.status_code == 429
    assert response.json()["detail"]["error_type"] == "BusyDuplicateError"


def test_transient_result_maps_to_503_with_run_id() -> None:
    client, _, _ = _client(lambda token: _result(token, TransientError("gateway timeout")))

    with client:
        response = client.post("/media/process/token", json=MESSAGE)

    assert response.status_code == 503
    assert response.json()["detail"]["run_id"] == "run-1"


def test_fatal_error_maps_to_500() -> None:
    client, _, _ = _client(lambda token: FatalPipelineError("persist failed"))

    with client:
        response = client.post("/media/process/token", json=MESSAGE)

    assert response.status_code == 500


def test_bad_token_is_reported_in_body() -> None:
    client, _, _ = _client(lambda token: _result(token, BadTokenError("no media")))

    with client:
        response = client.post("/media/process/token", json=MESSAGE)

    assert response.status_code == 200
    assert response.json()["error_type"] == "BadTokenError"


def test_required_image_failure_carries_persisted_result() -> None:
    client, _, _ = _client(
        lambda token: ImageResultRequiredError("image required", result=_result(token, BadTokenError("x")))
    )

    with client:
        response = client.post("/media/process/token", json={**MESSAGE, "require_image": True})

    assert response.status_code == 200
    assert response.json()["run_id"] == "run-1"
    assert response.json()["error_type"] == "ImageResultRequiredError"


@pytest.mark.parametrize("overrides", [{"token_id": "zz"}, {"cause": "teleport"}])
def test_invalid_requests_map_to_400(overrides) -> None:
    client, processor, _ = _client(lambda token: _result(token))

    with client:
        response = client.post("/media/process/token", json={**MESSAGE, **overrides})

    assert response.status_code == 400
    assert processor.calls == []


def test_signed_contract_requires_signature_check() -> None:
    client, processor, config = _client(lambda token: _result(token))
    with config.session_factory() as session:
        session.add(ContractModel(id=new_id(), chain=0, address="0xabc", metadata_json=json.dumps({"require_signed": True})))
        session.commit()

    with client:
        client.post("/media/process/token", json=MESSAGE)

    options = processor.calls[0][3]
    assert options.require_signed is not None


def test_keywords_and_metadata_become_job_options() -> None:
    client, processor, _ = _client(lambda token: _result(token))

    with client:
        client.post(
            "/media/process/token",
            json={**MESSAGE, "image_keywords": ["preview"], "metadata": {"image": "x"}, "refresh_metadata": True},
        )

    options = processor.calls[0][3]
    assert options.image_keywords == ("preview",)
    assert options.starting_metadata == {"image": "x"}
    assert options.refresh_metadata is True


def test_batch_reports_status_per_token() -> None:
    def outcome(token):
        if token.token_id == "1":
            return _result(token)
        if token.token_id == "2":
            return BusyDuplicateError(token.key())
        return _result(token, TransientError("timeout"))

    client, _, _ = _client(outcome)
    tokens = [{**MESSAGE, "token_id": token_id} for token_id in ("0x1", "0x2", "0x3")]

    with client:
        response = client.post("/media/process/batch", json={"tokens": tokens})

    assert response.status_code == 200
    assert [item["status"] for item in response.json()["results"]] == ["processed", "busy", "transient"]


def test_batch_with_fatal_item_fails() -> None:
    client, _, _ = _client(lambda token: FatalPipelineError("db down"))

    with client:
        response = client.post("/media/process/batch", json={"tokens": [MESSAGE]})

    assert response.status_code == 500
    assert response.json()["detail"]["results"][0]["status"] == "fatal"


def test_transfer_reprocesses_only_split_tokens() -> None:
    client, processor, config = _client(lambda token: _result(token))
    with config.session_factory() as session:
        session.add(SplitModel(id=new_id(), chain=0, address="0xsplit", name="split"))
        session.commit()
    transfers = [
        {"from_address": "0xSPLIT", "to_address": "0xbuyer", "token": {"address": "0xaaa", "chain": 0}},
        {"from_address": "0xnobody", "to_address": "0xbuyer", "token": {"address": "0xbbb", "chain": 0}},
    ]

    with client:
        response = client.post("/token/transfer", json={"transfers": transfers})

    assert response.status_code == 200
    assert response.json() == {"processed": ["0-0xaaa-0"], "skipped": ["0-0xbbb-0"]}
    assert processor.calls[0][2] is ProcessingCause.TRANSFER


def test_wallet_removal_reports_count() -> None:
    client, _, _ = _client(lambda token: _result(token))

    with client:
        response = client.post("/owners/wallet-removal", json={"user_id": "u1", "wallet_ids": ["w1", "w2"]})

    assert response.status_code == 200
    assert response.json() == {"removed": 0}


def test_task_secret_is_enforced_when_configured() -> None:
    client, _, _ = _client(lambda token: _result(token), token_processing_secret="task-secret")

    with client:
        rejected = client.post("/media/process/token", json=MESSAGE)
        accepted = client.post(
            "/media/process/token", json=MESSAGE, headers={"Authorization": basic_auth_header("task-secret")}
        )

    assert rejected.status_code == 401
    assert accepted.status_code == 200
