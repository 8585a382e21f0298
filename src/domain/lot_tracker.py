from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from .tax_event import Anomaly, AnomalyKind, BasisSource, HoldingPeriod, TaxableEvent
from .transactions import BasisOverride

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
LONG_TERM_THRESHOLD = timedelta(days=365)


def classify_holding_period(acquired_at: datetime | None, disposed_at: datetime) -> HoldingPeriod:
    """Long-term when held for at least 365 days; unknown acquisition dates are short-term."""
    if acquired_at is None:
        return HoldingPeriod.SHORT_TERM
    if disposed_at - acquired_at >= LONG_TERM_THRESHOLD:
        return HoldingPeriod.LONG_TERM
    return HoldingPeriod.SHORT_TERM


@dataclass
class AcquisitionLot:
    asset: str
    acquired_at: datetime
    original_amount: Decimal
    remaining_amount: Decimal
    total_cost_basis_usd: Decimal
    remaining_cost_basis_usd: Decimal
    source_reference: str

    @property
    def per_unit_cost_basis(self) -> Decimal:
        if self.original_amount == 0:
            return ZERO
        return self.total_cost_basis_usd / self.original_amount

    def take(self, quantity: Decimal) -> Decimal:
        """Consume `quantity` from the lot and return the cost basis it carried."""
        if quantity >= self.remaining_amount:
            # Full consumption hands over the exact remaining basis, no rounding drift.
            basis = self.remaining_cost_basis_usd
            self.remaining_amount = ZERO
            self.remaining_cost_basis_usd = ZERO
            return basis

        per_unit = self.remaining_cost_basis_usd / self.remaining_amount if self.remaining_amount > 0 else ZERO
        basis = per_unit * quantity
        self.remaining_amount -= quantity
        self.remaining_cost_basis_usd -= basis
        return basis


class OpenLotSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    asset: str
    acquired_at: datetime
    remaining_amount: Decimal
    remaining_cost_basis_usd: Decimal
    per_unit_cost_basis: Decimal
    source_reference: str


@dataclass
class _LotPortion:
    lot: AcquisitionLot
    quantity: Decimal
    cost_basis: Decimal


class LotTracker:
    """FIFO cost-basis engine over a per-asset queue of open acquisition lots.

    One tracker belongs to exactly one report computation. Caller must feed
    actions in chronological order. Data-quality problems (zero amounts,
    disposals exceeding holdings) are absorbed and recorded in `anomalies`
    instead of raising.
    """

    def __init__(self) -> None:
        self._ledger: dict[str, deque[AcquisitionLot]] = defaultdict(deque)
        self.anomalies: list[Anomaly] = []

    def acquire(
        self,
        *,
        asset: str,
        amount: Decimal,
        cost_basis: Decimal,
        acquired_at: datetime,
        source_reference: str,
    ) -> AcquisitionLot | None:
        if amount == 0:
            self._record(
                AnomalyKind.ZERO_AMOUNT_LOT,
                asset=asset,
                timestamp=acquired_at,
                source_reference=source_reference,
                detail="acquisition of zero amount ignored",
            )
            return None

        lot = AcquisitionLot(
            asset=asset,
            acquired_at=acquired_at,
            original_amount=amount,
            remaining_amount=amount,
            total_cost_basis_usd=cost_basis,
            remaining_cost_basis_usd=cost_basis,
            source_reference=source_reference,
        )
        self._ledger[asset].append(lot)
        logger.debug("Opened lot %s %s basis=%s ref=%s", amount, asset, cost_basis, source_reference)
        return lot

    def dispose(
        self,
        *,
        asset: str,
        amount: Decimal,
        proceeds: Decimal,
        disposed_at: datetime,
        source_reference: str,
        basis_override: BasisOverride | None = None,
        chain: str | None = None,
    ) -> list[TaxableEvent]:
        """Consume lots FIFO and return one taxable event per matched lot portion."""
        if amount == 0:
            self._record(
                AnomalyKind.ZERO_AMOUNT_DISPOSAL,
                asset=asset,
                timestamp=disposed_at,
                source_reference=source_reference,
                detail=f"disposal of zero amount with proceeds {proceeds} ignored",
            )
            return []

        portions, shortfall = self._consume(asset, amount)

        if basis_override is not None:
            # Externally supplied basis wins; lots are still consumed so holdings stay correct.
            cost_basis = basis_override.cost_basis_usd
            return [
                TaxableEvent(
                    asset=asset,
                    disposal_date=disposed_at,
                    acquired_at=basis_override.acquired_at,
                    amount=amount,
                    proceeds_usd=proceeds,
                    cost_basis_usd=cost_basis,
                    gain_loss_usd=proceeds - cost_basis,
                    holding_period=classify_holding_period(basis_override.acquired_at, disposed_at),
                    source_reference=source_reference,
                    basis_source=BasisSource.OVERRIDE,
                    chain=chain,
                )
            ]

        if shortfall > 0:
            self._record(
                AnomalyKind.OVERSOLD,
                asset=asset,
                timestamp=disposed_at,
                source_reference=source_reference,
                quantity=shortfall,
                detail=f"disposed {amount} but only {amount - shortfall} was held; shortfall reported with zero basis",
            )

        events: list[TaxableEvent] = []
        allocated = ZERO
        quantities: list[tuple[Decimal, _LotPortion | None]] = [(portion.quantity, portion) for portion in portions]
        if shortfall > 0:
            quantities.append((shortfall, None))

        for index, (quantity, portion) in enumerate(quantities):
            if index == len(quantities) - 1:
                portion_proceeds = proceeds - allocated
            else:
                portion_proceeds = proceeds * quantity / amount
            allocated += portion_proceeds

            if portion is None:
                cost_basis = ZERO
                acquired_at = None
                basis_source = BasisSource.MISSING
            else:
                cost_basis = portion.cost_basis
                acquired_at = portion.lot.acquired_at
                basis_source = BasisSource.LOTS

            events.append(
                TaxableEvent(
                    asset=asset,
                    disposal_date=disposed_at,
                    acquired_at=acquired_at,
                    amount=quantity,
                    proceeds_usd=portion_proceeds,
                    cost_basis_usd=cost_basis,
                    gain_loss_usd=portion_proceeds - cost_basis,
                    holding_period=classify_holding_period(acquired_at, disposed_at),
                    source_reference=source_reference,
                    basis_source=basis_source,
                    chain=chain,
                )
            )

        return events

    def _consume(self, asset: str, amount: Decimal) -> tuple[list[_LotPortion], Decimal]:
        open_lots = self._ledger.get(asset)
        portions: list[_LotPortion] = []
        remaining = amount

        while remaining > 0 and open_lots:
            lot = open_lots[0]
            take_quantity = min(remaining, lot.remaining_amount)
            cost_basis = lot.take(take_quantity)
            remaining -= take_quantity
            if take_quantity > 0:
                portions.append(_LotPortion(lot=lot, quantity=take_quantity, cost_basis=cost_basis))
                logger.debug(
                    "Matched %s %s from lot %s basis=%s", take_quantity, asset, lot.source_reference, cost_basis
                )
            if lot.remaining_amount == 0:
                open_lots.popleft()

        return portions, remaining

    def holdings(self, asset: str) -> Decimal:
        return sum((lot.remaining_amount for lot in self._ledger.get(asset, ())), start=ZERO)

    def open_lots(self, asset: str | None = None) -> list[OpenLotSnapshot]:
        assets: Iterable[str] = sorted(self._ledger) if asset is None else [asset]
        return [
            OpenLotSnapshot(
                asset=lot.asset,
                acquired_at=lot.acquired_at,
                remaining_amount=lot.remaining_amount,
                remaining_cost_basis_usd=lot.remaining_cost_basis_usd,
                per_unit_cost_basis=lot.per_unit_cost_basis,
                source_reference=lot.source_reference,
            )
            for name in assets
            for lot in self._ledger.get(name, ())
        ]

    def _record(
        self,
        kind: AnomalyKind,
        *,
        asset: str,
        timestamp: datetime,
        source_reference: str,
        detail: str,
        quantity: Decimal | None = None,
    ) -> None:
        logger.warning("Lot tracker anomaly %s asset=%s ref=%s: %s", kind, asset, source_reference, detail)
        self.anomalies.append(
            Anomaly(
                kind=kind,
                source_reference=source_reference,
                asset=asset,
                timestamp=timestamp,
                quantity=quantity,
                detail=detail,
            )
        )
