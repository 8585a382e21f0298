from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, model_validator


class HoldingPeriod(StrEnum):
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"


class IncomeType(StrEnum):
    REWARD = "reward"
    STAKING = "staking"
    AIRDROP = "airdrop"
    INTEREST = "interest"


class BasisSource(StrEnum):
    LOTS = "lots"
    OVERRIDE = "override"
    MISSING = "missing"


class TaxableEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    asset: str
    disposal_date: datetime
    acquired_at: datetime | None
    amount: Decimal
    proceeds_usd: Decimal
    cost_basis_usd: Decimal
    gain_loss_usd: Decimal
    holding_period: HoldingPeriod
    source_reference: str
    basis_source: BasisSource = BasisSource.LOTS
    chain: str | None = None

    @model_validator(mode="after")
    def _validate(self) -> TaxableEvent:
        if self.amount < 0:
            raise ValueError("amount must be >= 0")
        if self.gain_loss_usd != self.proceeds_usd - self.cost_basis_usd:
            raise ValueError("gain_loss_usd must equal proceeds_usd - cost_basis_usd")
        return self


class IncomeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    asset: str
    date: datetime
    amount: Decimal
    value_usd: Decimal
    income_type: IncomeType
    source_reference: str
    chain: str | None = None


class AnomalyKind(StrEnum):
    MALFORMED_TRANSACTION = "malformed_transaction"
    ZERO_AMOUNT_LOT = "zero_amount_lot"
    ZERO_AMOUNT_DISPOSAL = "zero_amount_disposal"
    OVERSOLD = "oversold"
    MISSING_SWAP_LEG = "missing_swap_leg"
    UNRECOGNIZED_TYPE = "unrecognized_type"


class Anomaly(BaseModel):
    """Data-quality problem that was absorbed instead of aborting the report."""

    model_config = ConfigDict(frozen=True)

    kind: AnomalyKind
    source_reference: str | None = None
    asset: str | None = None
    timestamp: datetime | None = None
    quantity: Decimal | None = None
    detail: str = ""
