from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, cast

from .tax_event import Anomaly, AnomalyKind, IncomeType
from .transactions import BasisOverride, Provenance, UnifiedTransaction

logger = logging.getLogger(__name__)

ZERO = Decimal(0)

ACQUISITION_TYPES = frozenset({"buy", "dca", "receive", "deposit", "nft purchase"})
# Income lots take |value_usd| as basis without adding fee_usd, unlike purchases.
INCOME_TYPES: dict[str, IncomeType] = {
    "reward": IncomeType.REWARD,
    "income": IncomeType.REWARD,
    "mining": IncomeType.REWARD,
    "staking": IncomeType.STAKING,
    "stake": IncomeType.STAKING,
    "airdrop": IncomeType.AIRDROP,
    "interest": IncomeType.INTEREST,
    "yield": IncomeType.INTEREST,
}
DISPOSAL_TYPES = frozenset({"sell", "send", "swap", "withdraw", "withdrawal", "nft sale"})


class ActionKind(StrEnum):
    ACQUISITION = "ACQUISITION"
    DISPOSAL = "DISPOSAL"
    SWAP = "SWAP"
    INCOME = "INCOME"
    NEUTRAL_TRANSFER = "NEUTRAL_TRANSFER"


@dataclass(frozen=True)
class AcquisitionLeg:
    asset: str
    amount: Decimal
    cost_basis_usd: Decimal


@dataclass(frozen=True)
class DisposalLeg:
    asset: str
    amount: Decimal
    proceeds_usd: Decimal
    basis_override: BasisOverride | None = None


@dataclass(frozen=True)
class ClassifiedAction:
    """A transaction reduced to the legs the lot tracker acts on.

    Swaps carry both legs; income carries an acquisition leg plus the
    recognized income value.
    """

    kind: ActionKind
    timestamp: datetime
    source_reference: str
    acquisition: AcquisitionLeg | None = None
    disposal: DisposalLeg | None = None
    income_type: IncomeType | None = None
    income_value_usd: Decimal = ZERO
    chain: str | None = None


def normalize_symbol(symbol: str | None) -> str:
    return (symbol or "").strip().upper()


class ActionClassifier:
    """Map raw transaction type strings onto the closed set of `ActionKind`.

    Classification never raises. Unknown types fall through to
    NEUTRAL_TRANSFER and are recorded as anomalies.
    """

    def __init__(self) -> None:
        self.counts: Counter[ActionKind] = Counter()
        self.anomalies: list[Anomaly] = []

    def classify(self, tx: UnifiedTransaction) -> ClassifiedAction:
        # Malformed rows (no timestamp) are filtered out before classification.
        action = self._classify(tx, cast(datetime, tx.timestamp))
        self.counts[action.kind] += 1
        return action

    def _classify(self, tx: UnifiedTransaction, timestamp: datetime) -> ClassifiedAction:
        tx_type = tx.type.strip().lower()
        asset = normalize_symbol(tx.asset_symbol)
        amount = abs(tx.amount)
        value = abs(tx.value_usd)
        fee = abs(tx.fee_usd) if tx.fee_usd is not None else ZERO
        base: dict[str, Any] = {"timestamp": timestamp, "source_reference": tx.source_reference, "chain": tx.chain}

        if tx_type in ACQUISITION_TYPES:
            return ClassifiedAction(
                kind=ActionKind.ACQUISITION,
                acquisition=AcquisitionLeg(asset=asset, amount=amount, cost_basis_usd=value + fee),
                **base,
            )

        if tx_type in INCOME_TYPES:
            # Income enters cost-basis tracking at its recognized value.
            return ClassifiedAction(
                kind=ActionKind.INCOME,
                acquisition=AcquisitionLeg(asset=asset, amount=amount, cost_basis_usd=value),
                income_type=INCOME_TYPES[tx_type],
                income_value_usd=value,
                **base,
            )

        if tx_type in DISPOSAL_TYPES:
            incoming_asset = normalize_symbol(tx.incoming_asset_symbol)
            if incoming_asset and tx.incoming_amount is not None:
                return self._swap(tx, asset, amount, value, fee, incoming_asset, base)

            if incoming_asset:
                self._record(
                    tx,
                    AnomalyKind.MISSING_SWAP_LEG,
                    f"incoming leg {incoming_asset} has no amount; treated as a plain disposal",
                )

            return ClassifiedAction(
                kind=ActionKind.DISPOSAL,
                disposal=DisposalLeg(
                    asset=asset,
                    amount=amount,
                    proceeds_usd=self._net_proceeds(tx, value, fee),
                    basis_override=tx.basis_override,
                ),
                **base,
            )

        self._record(tx, AnomalyKind.UNRECOGNIZED_TYPE, f"type {tx.type!r} treated as neutral transfer")
        return ClassifiedAction(kind=ActionKind.NEUTRAL_TRANSFER, **base)

    def _swap(
        self,
        tx: UnifiedTransaction,
        asset: str,
        amount: Decimal,
        value: Decimal,
        fee: Decimal,
        incoming_asset: str,
        base: dict[str, Any],
    ) -> ClassifiedAction:
        incoming_amount = abs(cast(Decimal, tx.incoming_amount))
        if tx.incoming_value_usd is not None:
            incoming_value = abs(tx.incoming_value_usd)
        else:
            # Without a quoted incoming value the legs are assumed to be of equal worth.
            incoming_value = value

        return ClassifiedAction(
            kind=ActionKind.SWAP,
            disposal=DisposalLeg(
                asset=asset,
                amount=amount,
                proceeds_usd=value,
                basis_override=tx.basis_override,
            ),
            acquisition=AcquisitionLeg(
                asset=incoming_asset,
                amount=incoming_amount,
                cost_basis_usd=incoming_value + fee,
            ),
            **base,
        )

    @staticmethod
    def _net_proceeds(tx: UnifiedTransaction, value: Decimal, fee: Decimal) -> Decimal:
        # CSV tax exports already report proceeds net of fees.
        if tx.provenance == Provenance.CSV_IMPORT:
            return value
        return max(ZERO, value - fee)

    def _record(self, tx: UnifiedTransaction, kind: AnomalyKind, detail: str) -> None:
        anomaly = Anomaly(
            kind=kind,
            source_reference=tx.source_reference,
            asset=normalize_symbol(tx.asset_symbol) or None,
            timestamp=tx.timestamp,
            detail=detail,
        )
        logger.warning("Classifier anomaly %s for %s: %s", kind, tx.source_reference, detail)
        self.anomalies.append(anomaly)
