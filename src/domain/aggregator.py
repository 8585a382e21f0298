from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from .transactions import Provenance, TransactionStatus, UnifiedTransaction

logger = logging.getLogger(__name__)

REPORTABLE_STATUSES = frozenset({TransactionStatus.CONFIRMED, TransactionStatus.COMPLETED, TransactionStatus.PENDING})

_DedupKey = tuple[datetime | None, str, str, Decimal, Provenance, str | None]


@dataclass
class LedgerSelection:
    transactions: list[UnifiedTransaction] = field(default_factory=list)
    duplicates_dropped: int = 0


def year_end(year: int) -> datetime:
    return datetime(year, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)


def is_owned(tx: UnifiedTransaction, wallets: set[str]) -> bool:
    """Union-of-ownership rule: linked wallets, unowned CSV imports and all exchange-API rows."""
    if tx.owner_wallet_address is not None and tx.owner_wallet_address.lower() in wallets:
        return True
    if tx.provenance == Provenance.CSV_IMPORT and tx.owner_wallet_address is None:
        return True
    return tx.provenance == Provenance.EXCHANGE_API


def select_ledger(
    transactions: Iterable[UnifiedTransaction],
    *,
    wallets: Iterable[str],
    year: int,
) -> LedgerSelection:
    """Select the canonical transaction stream used to compute `year`'s report.

    Earlier years are kept since their acquisitions seed the lots. Rows without
    a timestamp are passed through so the engine can count them as malformed.
    """
    owned_wallets = {wallet.lower() for wallet in wallets}
    cutoff = year_end(year)

    selected: list[UnifiedTransaction] = []
    seen_hashes: set[str] = set()
    # Composite key -> whether any row kept under it had no hash.
    seen_keys: dict[_DedupKey, bool] = {}
    duplicates = 0

    for tx in transactions:
        if not is_owned(tx, owned_wallets):
            continue
        if tx.status not in REPORTABLE_STATUSES:
            continue
        if tx.timestamp is not None and tx.timestamp > cutoff:
            continue

        # Malformed rows go through untouched; the engine skips and counts each one.
        if tx.is_malformed:
            selected.append(tx)
            continue

        if _is_duplicate(tx, seen_hashes, seen_keys):
            duplicates += 1
            continue

        key = _dedup_key(tx)
        if tx.tx_hash is not None:
            seen_hashes.add(tx.tx_hash)
        seen_keys[key] = seen_keys.get(key, False) or tx.tx_hash is None
        selected.append(tx)

    # Stable sort keeps the original stream order for equal timestamps.
    selected.sort(key=_sort_key)

    if duplicates:
        logger.info("Dropped %d duplicate transactions while selecting ledger for %d", duplicates, year)
    logger.info("Selected %d transactions for tax year %d", len(selected), year)
    return LedgerSelection(transactions=selected, duplicates_dropped=duplicates)


def _dedup_key(tx: UnifiedTransaction) -> _DedupKey:
    return (
        tx.timestamp,
        tx.type.strip().lower(),
        (tx.asset_symbol or "").strip().upper(),
        tx.amount,
        tx.provenance,
        tx.source,
    )


def _is_duplicate(tx: UnifiedTransaction, seen_hashes: set[str], seen_keys: dict[_DedupKey, bool]) -> bool:
    """Same hash, or same composite key where at least one of the two rows has no hash.

    Two rows with distinct hashes are always distinct transactions.
    """
    if tx.tx_hash is not None and tx.tx_hash in seen_hashes:
        return True
    key = _dedup_key(tx)
    if key not in seen_keys:
        return False
    return tx.tx_hash is None or seen_keys[key]


def _sort_key(tx: UnifiedTransaction) -> datetime:
    return tx.timestamp or datetime.min.replace(tzinfo=timezone.utc)
