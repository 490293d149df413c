"""Domain values shared across the token media pipeline."""

from .deadlines import PipelineDeadlines, stage_budget
from .media import Dimensions, Media, MediaType
from .tokens import (
    Chain,
    ContractIdentifier,
    TokenIdentifier,
    TokenMetadata,
    TokenProperties,
    TokenRecord,
    find_name_and_description,
    get_value,
    is_signed_metadata,
)

__all__ = [
    "Chain",
    "ContractIdentifier",
    "Dimensions",
    "Media",
    "MediaType",
    "PipelineDeadlines",
    "TokenIdentifier",
    "TokenMetadata",
    "TokenProperties",
    "TokenRecord",
    "find_name_and_description",
    "get_value",
    "is_signed_metadata",
    "stage_budget",
]
