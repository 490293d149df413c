"""Token identity and metadata helpers shared by every pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Mapping

DEFAULT_SEARCH_DEPTH = 2

TokenMetadata = dict[str, Any]

_CHAIN_ALIASES = {
    "ETH": "ETHEREUM",
    "ETH_MAINNET": "ETHEREUM",
    "MAINNET": "ETHEREUM",
    "ARB": "ARBITRUM",
    "ARB_MAINNET": "ARBITRUM",
    "MATIC": "POLYGON",
    "MATIC_MAINNET": "POLYGON",
    "POLYGON_MAINNET": "POLYGON",
    "OPT": "OPTIMISM",
    "OPT_MAINNET": "OPTIMISM",
    "OPTIMISM_MAINNET": "OPTIMISM",
    "BASE_MAINNET": "BASE",
    "BASESEPOLIA": "BASE_SEPOLIA",
}


class Chain(IntEnum):
    """Chains the pipeline knows how to index."""

    ETHEREUM = 0
    ARBITRUM = 1
    POLYGON = 2
    OPTIMISM = 3
    BASE = 4
    BASE_SEPOLIA = 5

    @classmethod
    def parse(cls, value: "Chain | int | str") -> "Chain":
        """Accept an enum member, its integer value or a case-insensitive name."""

        if isinstance(value, Chain):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        normalized = text.upper().replace("-", "_").replace(" ", "_")
        normalized = _CHAIN_ALIASES.get(normalized, normalized)
        try:
            return cls[normalized]
        except KeyError as exc:
            raise ValueError(f"unknown chain '{value}'") from exc

    def base_keywords(self) -> tuple[list[str], list[str]]:
        """Default metadata keywords for image and animation discovery."""

        return ["image"], ["animation", "video"]


def normalize_address(address: str) -> str:
    text = str(address).strip().lower()
    if not text:
        raise ValueError("address must not be empty")
    return text


def normalize_token_id(token_id: str | int) -> str:
    """Return the lowercase hex form of ``token_id`` without prefix or leading zeros."""

    if isinstance(token_id, int):
        if token_id < 0:
            raise ValueError("token id must not be negative")
        return format(token_id, "x")
    text = str(token_id).strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not text:
        raise ValueError("token id must not be empty")
    try:
        value = int(text, 16)
    except ValueError as exc:
        raise ValueError(f"invalid token id '{token_id}'") from exc
    return format(value, "x")


@dataclass(frozen=True, slots=True)
class ContractIdentifier:
    chain: Chain
    contract_address: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "chain", Chain.parse(self.chain))
        object.__setattr__(self, "contract_address", normalize_address(self.contract_address))

    def artifact_name(self) -> str:
        """Object-store suffix shared by every artifact of the contract."""

        return f"{int(self.chain)}-{self.contract_address}"

    def __str__(self) -> str:
        return f"{self.contract_address}-{int(self.chain)}"


@dataclass(frozen=True, slots=True)
class TokenIdentifier:
    """Normalized ``(chain, contract, token_id)`` triple; the token id is hex."""

    chain: Chain
    contract_address: str
    token_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "chain", Chain.parse(self.chain))
        object.__setattr__(self, "contract_address", normalize_address(self.contract_address))
        object.__setattr__(self, "token_id", normalize_token_id(self.token_id))

    @classmethod
    def from_decimal(cls, chain: Chain | int | str, contract_address: str, token_id: str | int) -> "TokenIdentifier":
        try:
            value = int(str(token_id).strip(), 10)
        except ValueError as exc:
            raise ValueError(f"invalid decimal token id '{token_id}'") from exc
        return cls(Chain.parse(chain), contract_address, value)

    @property
    def contract(self) -> ContractIdentifier:
        return ContractIdentifier(self.chain, self.contract_address)

    def to_decimal(self) -> str:
        return str(int(self.token_id, 16))

    def key(self) -> str:
        return f"{self.token_id}-{self.contract_address}-{int(self.chain)}"

    def __str__(self) -> str:
        return self.key()


@dataclass(slots=True)
class TokenProperties:
    """Flags describing what a run produced; clients pick fallback UI from these."""

    has_metadata: bool = False
    has_primary_media: bool = False
    has_thumbnail: bool = False
    has_live_render: bool = False
    has_dimensions: bool = False
    has_name: bool = False
    has_description: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "has_metadata": self.has_metadata,
            "has_primary_media": self.has_primary_media,
            "has_thumbnail": self.has_thumbnail,
            "has_live_render": self.has_live_render,
            "has_dimensions": self.has_dimensions,
            "has_name": self.has_name,
            "has_description": self.has_description,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "TokenProperties":
        payload = payload or {}
        return cls(**{key: bool(payload.get(key, False)) for key in cls().to_dict()})


def get_value(metadata: Mapping[str, Any], key: str, depth: int = DEFAULT_SEARCH_DEPTH) -> Any:
    """Find ``key`` in ``metadata``, descending into nested objects up to ``depth`` levels."""

    if not isinstance(metadata, Mapping):
        return None
    if key in metadata:
        return metadata[key]
    if depth <= 1:
        return None
    for value in metadata.values():
        if isinstance(value, Mapping):
            found = get_value(value, key, depth - 1)
            if found is not None:
                return found
    return None


def find_name_and_description(metadata: Mapping[str, Any] | None) -> tuple[str, str]:
    if not metadata:
        return "", ""
    name = get_value(metadata, "name")
    description = get_value(metadata, "description")
    return (
        name.strip() if isinstance(name, str) else "",
        description.strip() if isinstance(description, str) else "",
    )


def is_signed_metadata(metadata: Mapping[str, Any] | None) -> bool:
    """Signed-platform check used by contracts that only accept minted-and-signed tokens."""

    if not metadata:
        return False
    authenticity = get_value(metadata, "authenticityHash")
    if isinstance(authenticity, str) and authenticity.strip():
        return True
    return get_value(metadata, "signed") is True


@dataclass(slots=True)
class TokenRecord:
    """Persisted token definition as returned by the repository."""

    id: str
    identifier: TokenIdentifier
    name: str = ""
    description: str = ""
    metadata: TokenMetadata = field(default_factory=dict)
    media_id: str | None = None
    is_spam: bool | None = None


__all__ = [
    "Chain",
    "ContractIdentifier",
    "DEFAULT_SEARCH_DEPTH",
    "TokenIdentifier",
    "TokenMetadata",
    "TokenProperties",
    "TokenRecord",
    "find_name_and_description",
    "get_value",
    "is_signed_metadata",
    "normalize_address",
    "normalize_token_id",
]
