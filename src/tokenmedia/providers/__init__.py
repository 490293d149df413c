"""Chain data providers and their fallback combinators."""

from .metadata_finder import MetadataFinder
from .providers_alchemy import AlchemyProvider
from .providers_base import CAPABILITIES, Provider, ProviderToken
from .providers_errors import (
    CapabilityNotSupportedError,
    ProviderContractNotFoundError,
    ProviderError,
    ProviderFailedError,
)
from .providers_factory import create_chain_provider, create_providers
from .providers_fallback import eval_fallback, failure_fallback
from .providers_indexer import IndexerProvider

__all__ = [
    "AlchemyProvider",
    "CAPABILITIES",
    "CapabilityNotSupportedError",
    "IndexerProvider",
    "MetadataFinder",
    "Provider",
    "ProviderContractNotFoundError",
    "ProviderError",
    "ProviderFailedError",
    "ProviderToken",
    "create_chain_provider",
    "create_providers",
    "eval_fallback",
    "failure_fallback",
]
