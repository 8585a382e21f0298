from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from .lot_tracker import OpenLotSnapshot
from .tax_event import Anomaly, HoldingPeriod, IncomeEvent, TaxableEvent

ZERO = Decimal(0)
DEFAULT_CAPITAL_LOSS_LIMIT = Decimal(3000)
CENT = Decimal("0.01")


class Form8949Box(StrEnum):
    # Basis is never reported to the IRS for self-tracked crypto, hence boxes C and F.
    SHORT_TERM_NOT_REPORTED = "C"
    LONG_TERM_NOT_REPORTED = "F"


class Form8949Row(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    date_acquired: datetime | None
    date_sold: datetime
    proceeds_usd: Decimal
    cost_basis_usd: Decimal
    adjustment_code: str
    gain_loss_usd: Decimal


class Form8949Bucket(BaseModel):
    model_config = ConfigDict(frozen=True)

    box: Form8949Box
    holding_period: HoldingPeriod
    rows: list[Form8949Row]
    proceeds_usd: Decimal
    cost_basis_usd: Decimal
    gain_loss_usd: Decimal


class AssetSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    asset: str
    holding_period: HoldingPeriod
    event_count: int
    amount: Decimal
    proceeds_usd: Decimal
    cost_basis_usd: Decimal
    gain_loss_usd: Decimal


class TaxReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    method: str = "FIFO"

    short_term_gains_usd: Decimal
    long_term_gains_usd: Decimal
    short_term_losses_usd: Decimal
    long_term_losses_usd: Decimal
    total_income_usd: Decimal
    total_proceeds_usd: Decimal
    total_cost_basis_usd: Decimal
    net_capital_gain_usd: Decimal
    deductible_loss_usd: Decimal
    loss_carryover_usd: Decimal

    taxable_event_count: int
    income_event_count: int
    skipped_transaction_count: int = 0
    duplicates_dropped: int = 0

    asset_summaries: list[AssetSummary]
    form_8949: list[Form8949Bucket]

    taxable_events: list[TaxableEvent]
    income_events: list[IncomeEvent]
    anomalies: list[Anomaly]
    open_lots: list[OpenLotSnapshot]


def compile_tax_report(
    year: int,
    taxable_events: Iterable[TaxableEvent],
    income_events: Iterable[IncomeEvent],
    *,
    anomalies: Iterable[Anomaly] = (),
    open_lots: Iterable[OpenLotSnapshot] = (),
    skipped_transaction_count: int = 0,
    duplicates_dropped: int = 0,
    capital_loss_limit: Decimal = DEFAULT_CAPITAL_LOSS_LIMIT,
    method: str = "FIFO",
) -> TaxReport:
    """Reduce the year's events into totals and Form 8949 style buckets.

    Events are expected to be filtered to `year` already.
    """
    taxable = list(taxable_events)
    income = list(income_events)

    short_events = [event for event in taxable if event.holding_period == HoldingPeriod.SHORT_TERM]
    long_events = [event for event in taxable if event.holding_period == HoldingPeriod.LONG_TERM]

    short_net = _sum(event.gain_loss_usd for event in short_events)
    long_net = _sum(event.gain_loss_usd for event in long_events)
    net_gain = short_net + long_net

    # Net capital losses are deductible up to the limit, the rest carries over.
    net_loss = max(ZERO, -net_gain)
    deductible = min(net_loss, capital_loss_limit)

    return TaxReport(
        year=year,
        method=method,
        short_term_gains_usd=short_net,
        long_term_gains_usd=long_net,
        short_term_losses_usd=_sum(-event.gain_loss_usd for event in short_events if event.gain_loss_usd < 0),
        long_term_losses_usd=_sum(-event.gain_loss_usd for event in long_events if event.gain_loss_usd < 0),
        total_income_usd=_sum(event.value_usd for event in income),
        total_proceeds_usd=_sum(event.proceeds_usd for event in taxable),
        total_cost_basis_usd=_sum(event.cost_basis_usd for event in taxable),
        net_capital_gain_usd=net_gain,
        deductible_loss_usd=deductible,
        loss_carryover_usd=net_loss - deductible,
        taxable_event_count=len(taxable),
        income_event_count=len(income),
        skipped_transaction_count=skipped_transaction_count,
        duplicates_dropped=duplicates_dropped,
        asset_summaries=summarize_by_asset(taxable),
        form_8949=build_form_8949(taxable),
        taxable_events=taxable,
        income_events=income,
        anomalies=list(anomalies),
        open_lots=list(open_lots),
    )


def summarize_by_asset(events: Iterable[TaxableEvent]) -> list[AssetSummary]:
    grouped: dict[tuple[str, HoldingPeriod], list[TaxableEvent]] = defaultdict(list)
    for event in events:
        grouped[(event.asset, event.holding_period)].append(event)

    return [
        AssetSummary(
            asset=asset,
            holding_period=holding_period,
            event_count=len(group),
            amount=_sum(event.amount for event in group),
            proceeds_usd=_sum(event.proceeds_usd for event in group),
            cost_basis_usd=_sum(event.cost_basis_usd for event in group),
            gain_loss_usd=_sum(event.gain_loss_usd for event in group),
        )
        for (asset, holding_period), group in sorted(grouped.items())
    ]


def build_form_8949(events: Iterable[TaxableEvent]) -> list[Form8949Bucket]:
    """Part I (short-term, box C) and Part II (long-term, box F); empty parts are omitted."""
    rows_by_period: dict[HoldingPeriod, list[Form8949Row]] = {
        HoldingPeriod.SHORT_TERM: [],
        HoldingPeriod.LONG_TERM: [],
    }
    for event in events:
        # Rounded per row so that column (h) always equals (d) - (e) on the form.
        proceeds = event.proceeds_usd.quantize(CENT)
        cost_basis = event.cost_basis_usd.quantize(CENT)
        rows_by_period[event.holding_period].append(
            Form8949Row(
                description=_describe(event),
                date_acquired=event.acquired_at,
                date_sold=event.disposal_date,
                proceeds_usd=proceeds,
                cost_basis_usd=cost_basis,
                adjustment_code="",
                gain_loss_usd=proceeds - cost_basis,
            )
        )

    buckets: list[Form8949Bucket] = []
    for holding_period, box in (
        (HoldingPeriod.SHORT_TERM, Form8949Box.SHORT_TERM_NOT_REPORTED),
        (HoldingPeriod.LONG_TERM, Form8949Box.LONG_TERM_NOT_REPORTED),
    ):
        rows = rows_by_period[holding_period]
        if not rows:
            continue
        buckets.append(
            Form8949Bucket(
                box=box,
                holding_period=holding_period,
                rows=rows,
                proceeds_usd=_sum(row.proceeds_usd for row in rows),
                cost_basis_usd=_sum(row.cost_basis_usd for row in rows),
                gain_loss_usd=_sum(row.gain_loss_usd for row in rows),
            )
        )
    return buckets


def _describe(event: TaxableEvent) -> str:
    description = f"{event.amount.normalize():f} {event.asset}"
    if event.chain:
        description += f" ({event.chain})"
    return description


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, start=ZERO)
