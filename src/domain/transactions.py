from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import NewType
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TransactionId = NewType("TransactionId", str)
WalletAddress = NewType("WalletAddress", str)


def _as_utc(value: datetime | None) -> datetime | None:
    # Naive timestamps from CSV exports are treated as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Provenance(StrEnum):
    WALLET = "wallet"
    CSV_IMPORT = "csv_import"
    EXCHANGE_API = "exchange_api"


class TransactionStatus(StrEnum):
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


class BasisOverride(BaseModel):
    """Cost basis supplied by an upstream export instead of computed from lots."""

    model_config = ConfigDict(frozen=True)

    cost_basis_usd: Decimal
    acquired_at: datetime | None = None

    @field_validator("acquired_at", mode="after")
    @classmethod
    def _normalize_acquired_at(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def _validate(self) -> BasisOverride:
        if self.cost_basis_usd < 0:
            raise ValueError("cost_basis_usd must be >= 0")
        return self


class UnifiedTransaction(BaseModel):
    """Normalized transaction record shared by every ingestion source.

    `asset_symbol` and `timestamp` are optional on purpose: rows missing them are
    malformed and get skipped (and counted) by the engine instead of failing
    the whole import.
    """

    model_config = ConfigDict(frozen=True)

    id: TransactionId = Field(default_factory=lambda: TransactionId(str(uuid4())))
    tx_hash: str | None = None

    asset_symbol: str | None = None
    type: str = ""
    amount: Decimal = Decimal(0)
    value_usd: Decimal = Decimal(0)
    fee_usd: Decimal | None = None
    timestamp: datetime | None = None

    incoming_asset_symbol: str | None = None
    incoming_amount: Decimal | None = None
    incoming_value_usd: Decimal | None = None

    annotation: str | None = None
    basis_override: BasisOverride | None = None

    provenance: Provenance = Provenance.WALLET
    owner_wallet_address: WalletAddress | None = None
    source: str | None = None
    chain: str | None = None
    status: TransactionStatus = TransactionStatus.CONFIRMED

    @field_validator("timestamp", mode="after")
    @classmethod
    def _normalize_timestamp(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def source_reference(self) -> str:
        return self.tx_hash or self.id

    @property
    def is_malformed(self) -> bool:
        return self.timestamp is None or not (self.asset_symbol or "").strip()
