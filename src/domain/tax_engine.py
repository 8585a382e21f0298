from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Iterable, cast

from .aggregator import select_ledger, year_end
from .classifier import ActionClassifier, ActionKind, normalize_symbol
from .lot_tracker import LotTracker
from .tax_event import Anomaly, AnomalyKind, IncomeEvent, TaxableEvent
from .tax_report import DEFAULT_CAPITAL_LOSS_LIMIT, TaxReport, compile_tax_report
from .transactions import UnifiedTransaction

logger = logging.getLogger(__name__)


class CostBasisMethod(StrEnum):
    FIFO = "FIFO"
    LIFO = "LIFO"
    HIFO = "HIFO"


SUPPORTED_METHODS = frozenset({CostBasisMethod.FIFO})


def validate_request(year: int, method: str | CostBasisMethod) -> CostBasisMethod:
    """Reject contract violations before any lot is touched."""
    if isinstance(year, bool) or not isinstance(year, int) or year <= 0:
        msg = f"year must be a positive integer, got {year!r}"
        raise ValueError(msg)

    try:
        resolved = CostBasisMethod(str(method).upper())
    except ValueError:
        msg = f"Unknown cost basis method {method!r}"
        raise ValueError(msg) from None
    if resolved not in SUPPORTED_METHODS:
        msg = f"Cost basis method {resolved} is not supported; only FIFO is implemented"
        raise ValueError(msg)
    return resolved


def compute_tax_report(
    transactions: Iterable[UnifiedTransaction],
    year: int,
    method: str | CostBasisMethod = CostBasisMethod.FIFO,
    *,
    duplicates_dropped: int = 0,
    capital_loss_limit: Decimal = DEFAULT_CAPITAL_LOSS_LIMIT,
) -> TaxReport:
    """Compute the FIFO tax report for `year` from the full transaction history.

    The history must include prior years so their acquisitions seed the lots.
    Input order does not matter; transactions are stably sorted by timestamp.
    Every call rebuilds lots from scratch, so identical input gives identical
    output.
    """
    resolved_method = validate_request(year, method)

    skipped: list[Anomaly] = []
    valid: list[UnifiedTransaction] = []
    for tx in transactions:
        if tx.is_malformed:
            skipped.append(
                Anomaly(
                    kind=AnomalyKind.MALFORMED_TRANSACTION,
                    source_reference=tx.source_reference,
                    asset=normalize_symbol(tx.asset_symbol) or None,
                    timestamp=tx.timestamp,
                    detail="missing asset symbol or timestamp; transaction skipped",
                )
            )
            continue
        valid.append(tx)

    if skipped:
        logger.warning("Skipped %d malformed transactions", len(skipped))

    valid.sort(key=lambda tx: cast(datetime, tx.timestamp))
    year_start = datetime(year, 1, 1, tzinfo=timezone.utc)
    cutoff = year_end(year)

    classifier = ActionClassifier()
    tracker = LotTracker()
    taxable_events: list[TaxableEvent] = []
    income_events: list[IncomeEvent] = []

    for tx in valid:
        timestamp = cast(datetime, tx.timestamp)
        if timestamp > cutoff:
            break
        in_year = timestamp >= year_start

        action = classifier.classify(tx)

        # Outgoing leg first: a swap never funds itself with the asset it receives.
        if action.disposal is not None:
            events = tracker.dispose(
                asset=action.disposal.asset,
                amount=action.disposal.amount,
                proceeds=action.disposal.proceeds_usd,
                disposed_at=action.timestamp,
                source_reference=action.source_reference,
                basis_override=action.disposal.basis_override,
                chain=action.chain,
            )
            if in_year:
                taxable_events.extend(events)

        if action.acquisition is not None:
            tracker.acquire(
                asset=action.acquisition.asset,
                amount=action.acquisition.amount,
                cost_basis=action.acquisition.cost_basis_usd,
                acquired_at=action.timestamp,
                source_reference=action.source_reference,
            )

        income_leg = action.acquisition if action.kind == ActionKind.INCOME else None
        if in_year and income_leg is not None and action.income_type is not None:
            # Zero-value rewards still open a lot but recognize no income.
            if action.income_value_usd > 0:
                income_events.append(
                    IncomeEvent(
                        asset=income_leg.asset,
                        date=action.timestamp,
                        amount=income_leg.amount,
                        value_usd=action.income_value_usd,
                        income_type=action.income_type,
                        source_reference=action.source_reference,
                        chain=action.chain,
                    )
                )

    logger.info(
        "Tax year %d: processed %d transactions, %d taxable events, %d income events, action counts %s",
        year,
        len(valid),
        len(taxable_events),
        len(income_events),
        dict(sorted(classifier.counts.items())),
    )

    anomalies = [*skipped, *classifier.anomalies, *tracker.anomalies]
    anomalies.sort(key=_anomaly_sort_key)

    return compile_tax_report(
        year,
        taxable_events,
        income_events,
        anomalies=anomalies,
        open_lots=tracker.open_lots(),
        skipped_transaction_count=len(skipped),
        duplicates_dropped=duplicates_dropped,
        capital_loss_limit=capital_loss_limit,
        method=resolved_method.value,
    )


def _anomaly_sort_key(anomaly: Anomaly) -> tuple[datetime, str]:
    return (anomaly.timestamp or datetime.min.replace(tzinfo=timezone.utc), anomaly.kind.value)


def compute_wallet_tax_report(
    transactions: Iterable[UnifiedTransaction],
    year: int,
    *,
    wallets: Iterable[str],
    method: str | CostBasisMethod = CostBasisMethod.FIFO,
    capital_loss_limit: Decimal = DEFAULT_CAPITAL_LOSS_LIMIT,
) -> TaxReport:
    """Select a user's canonical ledger from raw records, then compute the report."""
    validate_request(year, method)
    selection = select_ledger(transactions, wallets=wallets, year=year)
    return compute_tax_report(
        selection.transactions,
        year,
        method,
        duplicates_dropped=selection.duplicates_dropped,
        capital_loss_limit=capital_loss_limit,
    )
