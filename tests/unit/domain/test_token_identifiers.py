from __future__ import annotations

import pytest

from src.tokenmedia.domain.tokens import (
    Chain,
    ContractIdentifier,
    TokenIdentifier,
    TokenProperties,
    find_name_and_description,
    get_value,
    is_signed_metadata,
    normalize_token_id,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("ethereum", Chain.ETHEREUM),
        ("ETH", Chain.ETHEREUM),
        ("arb-mainnet", Chain.ARBITRUM),
        ("MATIC_MAINNET", Chain.POLYGON),
        ("base sepolia", Chain.BASE_SEPOLIA),
        ("4", Chain.BASE),
        (3, Chain.OPTIMISM),
    ],
)
def test_chain_parse_accepts_names_aliases_and_numbers(value, expected) -> None:
    assert Chain.parse(value) is expected


def test_chain_parse_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="unknown chain"):
        Chain.parse("solana")


def test_token_identifier_normalizes_address_and_token_id() -> None:
    token = TokenIdentifier("eth", "0xABCDEF", "0x00FF")

    assert token.chain is Chain.ETHEREUM
    assert token.contract_address == "0xabcdef"
    assert token.token_id == "ff"
    assert token.key() == "ff-0xabcdef-0"
    assert token.to_decimal() == "255"


def test_token_identifier_from_decimal() -> None:
    token = TokenIdentifier.from_decimal(Chain.BASE, "0xAbc", "4096")

    assert token.token_id == "1000"
    assert token.contract == ContractIdentifier(Chain.BASE, "0xabc")


def test_invalid_token_ids_are_rejected() -> None:
    with pytest.raises(ValueError):
        normalize_token_id("0xZZ")
    with pytest.raises(ValueError):
        normalize_token_id("")
    with pytest.raises(ValueError):
        TokenIdentifier.from_decimal(Chain.ETHEREUM, "0xabc", "12a")


def test_artifact_name_is_shared_by_every_token_of_a_contract() -> None:
    first = TokenIdentifier(Chain.POLYGON, "0xAbc", "1")
    second = TokenIdentifier(Chain.POLYGON, "0xabc", "2")

    assert first.contract.artifact_name() == second.contract.artifact_name() == "2-0xabc"


def test_get_value_searches_nested_objects_to_depth() -> None:
    metadata = {"properties": {"image": "ipfs://nested"}, "deep": {"a": {"image": "too-deep"}}}

    assert get_value(metadata, "image") == "ipfs://nested"
    assert get_value({"deep": {"a": {"image": "x"}}}, "image") is None
    assert get_value({"deep": {"a": {"image": "x"}}}, "image", depth=3) == "x"


def test_name_and_description_are_trimmed_strings() -> None:
    assert find_name_and_description({"name": "  Genesis ", "description": 7}) == ("Genesis", "")
    assert find_name_and_description(None) == ("", "")


def test_signed_metadata_detection() -> None:
    assert is_signed_metadata({"authenticityHash": "0x123"})
    assert is_signed_metadata({"properties": {"signed": True}})
    assert not is_signed_metadata({"signed": "yes"})
    assert not is_signed_metadata({})


def test_token_properties_round_trip_ignores_unknown_keys() -> None:
    properties = TokenProperties.from_dict({"has_metadata": True, "has_name": 1, "extra": True})

    assert properties.has_metadata and properties.has_name
    assert not properties.has_primary_media
    assert set(properties.to_dict()) == {
        "has_metadata",
        "has_primary_media",
        "has_thumbnail",
        "has_live_render",
        "has_dimensions",
        "has_name",
        "has_description",
    }
