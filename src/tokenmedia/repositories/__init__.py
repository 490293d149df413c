"""Repositories over the SQLAlchemy models."""

from .token_pipeline_repository import (
    InsertTokenPipelineResultsParams,
    PipelineRunRecord,
    SplitRecord,
    TokenMediaRecord,
    TokenPipelineRepository,
)

__all__ = [
    "InsertTokenPipelineResultsParams",
    "PipelineRunRecord",
    "SplitRecord",
    "TokenMediaRecord",
    "TokenPipelineRepository",
]
