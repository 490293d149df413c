"""Task-queue targets that run the token pipeline."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from ..domain.tokens import TokenIdentifier, is_signed_metadata
from ..exceptions import NotFoundError, RepositoryError
from ..providers.providers_errors import ProviderContractNotFoundError
from ..repositories.token_pipeline_repository import TokenPipelineRepository
from ..tasks.task_models import (
    TokenProcessingBatchMessage,
    TokenProcessingTokenMessage,
    TokenProcessingWalletRemovalMessage,
    TokenTransfer,
    TokenTransferProcessingMessage,
)
from ..webhooks.webhook_auth import verify_basic_auth
from .pipeline_errors import (
    BadTokenError,
    BusyDuplicateError,
    FatalPipelineError,
    ImageResultRequiredError,
    TransientError,
)
from .pipeline_models import JobOptions, ProcessingCause, TokenPipelineResult
from .pipeline_schemas import (
    BatchItemResponse,
    BatchResponse,
    ProcessTokenResponse,
    TransferProcessingResponse,
    WalletRemovalResponse,
)
from .pipeline_service import TokenProcessor

logger = logging.getLogger(__name__)

BATCH_CONCURRENCY = 4


def get_token_processor(request: Request) -> TokenProcessor:
    try:
        return request.app.state.token_processor  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - misconfigured app
        raise RuntimeError("TokenProcessor is not configured") from exc


def get_token_repository(request: Request) -> TokenPipelineRepository:
    try:
        return request.app.state.token_repository  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - misconfigured app
        raise RuntimeError("TokenPipelineRepository is not configured") from exc


def require_task_auth(request: Request, authorization: str | None = Header(None)) -> None:
    """Reject task calls without the configured secret; open when none is set."""

    secret = getattr(request.app.state, "task_secret", None)
    if secret and not verify_basic_auth(authorization, [secret]):
        logger.warning("tokenprocessing.unauthorized", extra={"path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"status": "error", "error": "invalid or missing authorization"},
        )


router = APIRouter(tags=["tokenprocessing"], dependencies=[Depends(require_task_auth)])


def _error_detail(exc: Exception) -> dict[str, str]:
    return {"status": "error", "error": str(exc), "error_type": type(exc).__name__}


def _token_for(message: TokenProcessingTokenMessage) -> TokenIdentifier:
    try:
        return TokenIdentifier(message.chain, message.contract_address, message.token_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_error_detail(exc)) from exc


async def _options_for(
    message: TokenProcessingTokenMessage,
    token: TokenIdentifier,
    repository: TokenPipelineRepository,
) -> JobOptions:
    options = JobOptions(
        refresh_metadata=message.refresh_metadata,
        is_spam_job=message.is_spam,
        require_image=message.require_image,
        profile_image_key=message.profile_image_key,
        placeholder_image_url=message.placeholder_image_url,
    )
    if message.image_keywords or message.animation_keywords:
        options = options.with_keywords(message.image_keywords, message.animation_keywords)
    if message.metadata:
        options = options.with_metadata(message.metadata)
    try:
        contract_metadata = await asyncio.to_thread(
            repository.get_token_metadata, token.contract_address, token.chain
        )
    except NotFoundError:
        contract_metadata = {}
    if contract_metadata.get("require_signed"):
        options = options.with_require_signed(is_signed_metadata)
    return options


async def _run(
    message: TokenProcessingTokenMessage,
    processor: TokenProcessor,
    repository: TokenPipelineRepository,
) -> TokenPipelineResult:
    token = _token_for(message)
    try:
        cause = ProcessingCause(message.cause)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_error_detail(exc)) from exc
    options = await _options_for(message, token, repository)
    return await processor.process_token(token, token.contract, cause, options)


@router.post("/media/process/token", response_model=ProcessTokenResponse)
async def process_media_for_token(
    message: TokenProcessingTokenMessage,
    processor: TokenProcessor = Depends(get_token_processor),
    repository: TokenPipelineRepository = Depends(get_token_repository),
) -> ProcessTokenResponse:
    """Run the pipeline for one token; 429 and 503 ask the queue to redeliver."""

    try:
        result = await _run(message, processor, repository)
    except BusyDuplicateError as exc:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=_error_detail(exc)) from exc
    except FatalPipelineError as exc:
        logger.error("tokenprocessing.fatal", extra={"error": str(exc)})
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_error_detail(exc)) from exc
    except ImageResultRequiredError as exc:
        if isinstance(exc.result, TokenPipelineResult):
            return ProcessTokenResponse.from_result(exc.result, exc)
        return ProcessTokenResponse(
            token=f"{message.token_id}-{message.contract_address}-{int(message.chain)}",
            error=str(exc),
            error_type=type(exc).__name__,
        )
    except RepositoryError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_error_detail(exc)) from exc

    if isinstance(result.error, TransientError):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={**_error_detail(result.error), "run_id": result.run_id},
        )
    return ProcessTokenResponse.from_result(result)


@router.post("/media/process/batch", response_model=BatchResponse)
async def process_media_for_tokens(
    message: TokenProcessingBatchMessage,
    processor: TokenProcessor = Depends(get_token_processor),
    repository: TokenPipelineRepository = Depends(get_token_repository),
) -> BatchResponse:
    semaphore = asyncio.Semaphore(BATCH_CONCURRENCY)

    async def run_one(item: TokenProcessingTokenMessage) -> BatchItemResponse:
        key = f"{item.token_id}-{item.contract_address}-{int(item.chain)}"
        async with semaphore:
            try:
                result = await _run(item, processor, repository)
            except HTTPException as exc:
                return BatchItemResponse(token=key, status="invalid", error=str(exc.detail))
            except BusyDuplicateError as exc:
                return BatchItemResponse(token=key, status="busy", error=str(exc))
            except ImageResultRequiredError as exc:
                run_id = exc.result.run_id if isinstance(exc.result, TokenPipelineResult) else None
                return BatchItemResponse(token=key, status="error", run_id=run_id, error=str(exc))
            except (FatalPipelineError, RepositoryError) as exc:
                return BatchItemResponse(token=key, status="fatal", error=str(exc))
        if result.error is None:
            return BatchItemResponse(token=result.token.key(), status="processed", run_id=result.run_id)
        outcome = "transient" if isinstance(result.error, TransientError) else "error"
        return BatchItemResponse(
            token=result.token.key(), status=outcome, run_id=result.run_id, error=str(result.error)
        )

    results = await asyncio.gather(*(run_one(item) for item in message.tokens))
    if any(item.status == "fatal" for item in results):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"status": "error", "results": [item.model_dump() for item in results]},
        )
    return BatchResponse(results=list(results))


async def _split_for(transfer: TokenTransfer, repository: TokenPipelineRepository):
    for address in (transfer.from_address, transfer.to_address):
        if not address:
            continue
        split = await asyncio.to_thread(repository.get_split_by_address, address)
        if split is not None:
            return split
    return None


@router.post("/token/transfer", response_model=TransferProcessingResponse)
async def process_token_transfers(
    message: TokenTransferProcessingMessage,
    processor: TokenProcessor = Depends(get_token_processor),
    repository: TokenPipelineRepository = Depends(get_token_repository),
) -> TransferProcessingResponse:
    """Reprocess tokens moving in or out of a known split."""

    response = TransferProcessingResponse()
    try:
        for transfer in message.transfers:
            token = TokenIdentifier(transfer.token.chain, transfer.token.address, "0")
            split = await _split_for(transfer, repository)
            if split is None:
                response.skipped.append(token.key())
                continue
            try:
                result = await processor.process_token(token, token.contract, ProcessingCause.TRANSFER, JobOptions())
            except BusyDuplicateError:
                response.skipped.append(token.key())
                continue
            if isinstance(result.error, (BadTokenError, ProviderContractNotFoundError)):
                logger.info(
                    "tokenprocessing.transfer.unprocessable",
                    extra={"token": token.key(), "split": split.address, "error": str(result.error)},
                )
            response.processed.append(token.key())
    except (FatalPipelineError, RepositoryError) as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_error_detail(exc)) from exc
    return response


@router.post("/owners/wallet-removal", response_model=WalletRemovalResponse)
async def remove_wallets_from_tokens(
    message: TokenProcessingWalletRemovalMessage,
    repository: TokenPipelineRepository = Depends(get_token_repository),
) -> WalletRemovalResponse:
    removed = 0
    try:
        for wallet_id in message.wallet_ids:
            removed += await asyncio.to_thread(repository.remove_wallet_from_tokens, wallet_id, message.user_id)
    except RepositoryError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_error_detail(exc)) from exc
    logger.info(
        "tokenprocessing.wallet_removal",
        extra={"user_id": message.user_id, "wallets": len(message.wallet_ids), "removed": removed},
    )
    return WalletRemovalResponse(removed=removed)


__all__ = ["get_token_processor", "get_token_repository", "router"]
