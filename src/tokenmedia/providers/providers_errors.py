"""Errors raised by chain data providers."""

from __future__ import annotations


class ProviderError(Exception):
    """Base class for provider failures."""


class ProviderContractNotFoundError(ProviderError):
    """The provider does not index the requested contract."""

    def __init__(self, message: str, *, chain: int | None = None, contract_address: str | None = None) -> None:
        super().__init__(message)
        self.chain = chain
        self.contract_address = contract_address


class ProviderFailedError(ProviderError):
    """The provider call failed; ``transient`` marks failures worth retrying."""

    def __init__(self, message: str, *, status_code: int | None = None, transient: bool = True) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient


class CapabilityNotSupportedError(ProviderError):
    """The provider does not advertise the requested capability."""


__all__ = [
    "CapabilityNotSupportedError",
    "ProviderContractNotFoundError",
    "ProviderError",
    "ProviderFailedError",
]
