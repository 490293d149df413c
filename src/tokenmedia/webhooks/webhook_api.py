"""Webhook ingress: vendor address-activity events become transfer tasks.

Every response is HTTP 200 since the vendor treats anything else as undelivered.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..tasks.task_client import TaskClient
from ..tasks.task_errors import TaskError
from ..tasks.task_models import TokenTransferProcessingMessage
from .webhook_auth import WebhookAuthError, require_basic_auth
from .webhook_schemas import AddressActivityWebhook, SuccessResponse

logger = logging.getLogger(__name__)


def get_task_client(request: Request) -> TaskClient:
    try:
        return request.app.state.task_client  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - misconfigured app
        raise RuntimeError("TaskClient is not configured") from exc


def require_webhook_auth(request: Request, authorization: str | None = Header(None)) -> None:
    secrets = getattr(request.app.state, "webhook_secrets", ())
    require_basic_auth(authorization, secrets)


router = APIRouter(dependencies=[Depends(require_webhook_auth)])
token_router = APIRouter(prefix="/token", tags=["webhooks"])
pool_router = APIRouter(prefix="/pool", tags=["webhooks"])


async def submit_transfers(client: TaskClient, message: TokenTransferProcessingMessage) -> None:
    try:
        await client.create_task_for_token_transfer_processing(message)
    except TaskError as exc:
        logger.error(
            "webhooks.transfer.submit_failed",
            extra={"transfers": len(message.transfers), "error": str(exc)},
        )


@token_router.post("/transfer")
async def process_token_transfer(
    request: Request,
    background: BackgroundTasks,
    client: TaskClient = Depends(get_task_client),
):
    try:
        payload = AddressActivityWebhook.model_validate(await request.json())
        transfers = payload.transfers()
    except (ValidationError, ValueError) as exc:
        logger.warning("webhooks.transfer.malformed", extra={"error": str(exc)})
        return JSONResponse({"error": str(exc)})

    if transfers:
        background.add_task(submit_transfers, client, TokenTransferProcessingMessage(transfers=transfers))
    logger.info(
        "webhooks.transfer.accepted",
        extra={"chain": int(payload.event.network), "transfers": len(transfers)},
    )
    return SuccessResponse()


def _acknowledge(event: str):
    async def handler() -> SuccessResponse:
        logger.info("webhooks.pool.received", extra={"event": event})
        return SuccessResponse()

    handler.__name__ = f"process_pool_{event.replace('/', '_')}"
    return handler


for _event in (
    "publish",
    "activate",
    "deactivate",
    "recipient/create",
    "recipient/update",
    "recipient/delete",
    "owner/update",
    "owner/delete",
):
    pool_router.add_api_route(f"/{_event}", _acknowledge(_event), methods=["POST"], response_model=SuccessResponse)

router.include_router(token_router)
router.include_router(pool_router)


async def webhook_auth_error_handler(request: Request, exc: WebhookAuthError) -> JSONResponse:
    logger.warning("webhooks.unauthorized", extra={"path": request.url.path})
    return JSONResponse({"error": str(exc)}, status_code=200)


def register_webhook_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WebhookAuthError, webhook_auth_error_handler)


__all__ = ["get_task_client", "register_webhook_handlers", "router", "submit_transfers"]
