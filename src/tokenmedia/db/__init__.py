"""Database models and setup helpers."""

from .db_init import init_db
from .db_models import (
    Base,
    ContractModel,
    SplitModel,
    TokenMediaModel,
    TokenModel,
    TokenOwnershipModel,
    TokenPipelineRunModel,
    WalletModel,
)

__all__ = [
    "Base",
    "ContractModel",
    "SplitModel",
    "TokenMediaModel",
    "TokenModel",
    "TokenOwnershipModel",
    "TokenPipelineRunModel",
    "WalletModel",
    "init_db",
]
