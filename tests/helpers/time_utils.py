from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import count
from random import Random
from typing import Callable

from domain.transactions import (
    BasisOverride,
    Provenance,
    TransactionId,
    TransactionStatus,
    UnifiedTransaction,
    WalletAddress,
)
from tests.constants import OWNER_WALLET


@dataclass
class TimeGenerator:
    """Deterministic timestamp generator with random-ish gaps."""

    _current: datetime | None = None
    _rng: Random = Random(0)
    _seed: int = 0

    def __call__(self) -> datetime:
        return self.next()

    def next(self) -> datetime:
        if self._current is None:
            self._current = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._current += timedelta(seconds=self._rng.randint(5, 60))
        return self._current

    def reset(self) -> None:
        self._current = None
        self._rng = Random(self._seed)


DEFAULT_TIME_GEN = TimeGenerator()
_TX_COUNTER = count()


def make_tx(
    tx_type: str,
    asset: str | None,
    amount: Decimal | str | int,
    value_usd: Decimal | str | int = 0,
    *,
    timestamp: datetime | None = None,
    ts_gen: Callable[[], datetime] | None = None,
    fee_usd: Decimal | str | int | None = None,
    incoming_asset: str | None = None,
    incoming_amount: Decimal | str | int | None = None,
    incoming_value_usd: Decimal | str | int | None = None,
    basis_override: BasisOverride | None = None,
    provenance: Provenance = Provenance.WALLET,
    owner: str | None = OWNER_WALLET,
    tx_hash: str | None = None,
    source: str | None = None,
    status: TransactionStatus = TransactionStatus.CONFIRMED,
) -> UnifiedTransaction:
    """Helper to create a UnifiedTransaction with an auto-generated timestamp and id."""
    if timestamp is None:
        if ts_gen is None:
            ts_gen = DEFAULT_TIME_GEN
        timestamp = ts_gen()

    return UnifiedTransaction(
        id=TransactionId(f"test-tx-{next(_TX_COUNTER)}"),
        tx_hash=tx_hash,
        asset_symbol=asset,
        type=tx_type,
        amount=Decimal(amount),
        value_usd=Decimal(value_usd),
        fee_usd=Decimal(fee_usd) if fee_usd is not None else None,
        timestamp=timestamp,
        incoming_asset_symbol=incoming_asset,
        incoming_amount=Decimal(incoming_amount) if incoming_amount is not None else None,
        incoming_value_usd=Decimal(incoming_value_usd) if incoming_value_usd is not None else None,
        basis_override=basis_override,
        provenance=provenance,
        owner_wallet_address=WalletAddress(owner) if owner is not None else None,
        source=source,
        status=status,
    )


def utc(year: int, month: int = 1, day: int = 1, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)
