from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from importers.annotations import extract_basis_override, extract_swap_legs


def test_extract_basis_override_with_purchase_date() -> None:
    override = extract_basis_override("Imported from Koinly. Cost Basis: $1,256.53 Purchased: 2022-01-05")

    assert override is not None
    assert override.cost_basis_usd == Decimal("1256.53")
    assert override.acquired_at == datetime(2022, 1, 5, tzinfo=timezone.utc)


def test_extract_basis_override_without_date() -> None:
    override = extract_basis_override("cost basis: 42")

    assert override is not None
    assert override.cost_basis_usd == Decimal(42)
    assert override.acquired_at is None


def test_extract_basis_override_ignores_unrelated_notes() -> None:
    assert extract_basis_override(None) is None
    assert extract_basis_override("") is None
    assert extract_basis_override("Purchased: 2022-01-05") is None


def test_extract_basis_override_skips_invalid_date() -> None:
    override = extract_basis_override("Cost Basis: $10 Purchased: 2022-13-45")

    assert override is not None
    assert override.acquired_at is None


def test_extract_swap_legs() -> None:
    legs = extract_swap_legs("1,000 USDC → 0.412 eth")

    assert legs is not None
    assert legs.outgoing_asset == "USDC"
    assert legs.outgoing_amount == Decimal(1000)
    assert legs.incoming_asset == "ETH"
    assert legs.incoming_amount == Decimal("0.412")


def test_extract_swap_legs_ascii_arrow() -> None:
    legs = extract_swap_legs("5 SOL -> 135 USDC")

    assert legs is not None
    assert (legs.outgoing_asset, legs.incoming_asset) == ("SOL", "USDC")


def test_extract_swap_legs_needs_amounts() -> None:
    assert extract_swap_legs("Original asset description: Ethereum → Polygon") is None
    assert extract_swap_legs(None) is None
