"""Pydantic response schemas for the token processing routes."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .pipeline_models import TokenPipelineResult


class ProcessTokenResponse(BaseModel):
    token: str
    run_id: str | None = None
    media_id: str | None = None
    media: dict[str, Any] = Field(default_factory=dict)
    properties: dict[str, bool] = Field(default_factory=dict)
    pipeline_metadata: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    error_type: str | None = None

    @classmethod
    def from_result(cls, result: TokenPipelineResult, error: Exception | None = None) -> "ProcessTokenResponse":
        error = error if error is not None else result.error
        return cls(
            token=result.token.key(),
            run_id=result.run_id,
            media_id=result.media_id,
            media=result.media.to_dict(),
            properties=result.properties.to_dict(),
            pipeline_metadata=result.pipeline_metadata.to_dict(),
            error=str(error) if error is not None else None,
            error_type=type(error).__name__ if error is not None else None,
        )


class BatchItemResponse(BaseModel):
    token: str
    status: str
    run_id: str | None = None
    error: str | None = None


class BatchResponse(BaseModel):
    results: list[BatchItemResponse]


class TransferProcessingResponse(BaseModel):
    processed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)


class WalletRemovalResponse(BaseModel):
    removed: int


class ErrorSchema(BaseModel):
    status: str = "error"
    error: str
    error_type: str


__all__ = [
    "BatchItemResponse",
    "BatchResponse",
    "ErrorSchema",
    "ProcessTokenResponse",
    "TransferProcessingResponse",
    "WalletRemovalResponse",
]
