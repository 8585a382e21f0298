from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from db import models
from domain.transactions import (
    BasisOverride,
    Provenance,
    TransactionId,
    TransactionStatus,
    UnifiedTransaction,
    WalletAddress,
)


class UnifiedTransactionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, transactions: list[UnifiedTransaction]) -> list[UnifiedTransaction]:
        orm_transactions = [self._to_orm(tx) for tx in transactions]
        self._session.add_all(orm_transactions)
        self._session.commit()
        return transactions

    def get(self, transaction_id: TransactionId) -> UnifiedTransaction | None:
        orm_tx = self._session.get(models.UnifiedTransactionOrm, transaction_id)
        if orm_tx is None:
            return None
        return self._to_domain(orm_tx)

    def list(self) -> list[UnifiedTransaction]:
        orm_txs = (
            self._session.query(models.UnifiedTransactionOrm)
            .order_by(models.UnifiedTransactionOrm.timestamp.asc(), models.UnifiedTransactionOrm.id.asc())
            .all()
        )
        return [self._to_domain(tx) for tx in orm_txs]

    def list_owned(self, wallets: Iterable[str], *, until: datetime | None = None) -> list[UnifiedTransaction]:
        """Transactions in the union-of-ownership scope, optionally up to `until` inclusive.

        Deduplication and status filtering are left to `domain.aggregator.select_ledger`.
        """
        orm = models.UnifiedTransactionOrm
        lowered = sorted({wallet.lower() for wallet in wallets})

        ownership = or_(
            func.lower(orm.owner_wallet_address).in_(lowered),
            and_(orm.provenance == Provenance.CSV_IMPORT.value, orm.owner_wallet_address.is_(None)),
            orm.provenance == Provenance.EXCHANGE_API.value,
        )
        query = self._session.query(orm).filter(ownership)
        if until is not None:
            # Rows without a timestamp are kept so the engine can count them as malformed.
            query = query.filter(or_(orm.timestamp.is_(None), orm.timestamp <= _to_utc(until)))

        orm_txs = query.order_by(orm.timestamp.asc(), orm.id.asc()).all()
        return [self._to_domain(tx) for tx in orm_txs]

    @staticmethod
    def _to_orm(tx: UnifiedTransaction) -> models.UnifiedTransactionOrm:
        override = tx.basis_override
        return models.UnifiedTransactionOrm(
            id=tx.id,
            tx_hash=tx.tx_hash,
            asset_symbol=tx.asset_symbol,
            type=tx.type,
            amount=tx.amount,
            value_usd=tx.value_usd,
            fee_usd=tx.fee_usd,
            timestamp=_to_utc(tx.timestamp),
            incoming_asset_symbol=tx.incoming_asset_symbol,
            incoming_amount=tx.incoming_amount,
            incoming_value_usd=tx.incoming_value_usd,
            annotation=tx.annotation,
            basis_override_cost_usd=override.cost_basis_usd if override is not None else None,
            basis_override_acquired_at=_to_utc(override.acquired_at) if override is not None else None,
            provenance=tx.provenance.value,
            owner_wallet_address=tx.owner_wallet_address,
            source=tx.source,
            chain=tx.chain,
            status=tx.status.value,
        )

    @staticmethod
    def _to_domain(orm_tx: models.UnifiedTransactionOrm) -> UnifiedTransaction:
        basis_override = None
        if orm_tx.basis_override_cost_usd is not None:
            basis_override = BasisOverride(
                cost_basis_usd=orm_tx.basis_override_cost_usd,
                acquired_at=_as_utc(orm_tx.basis_override_acquired_at),
            )

        owner = orm_tx.owner_wallet_address
        return UnifiedTransaction(
            id=TransactionId(orm_tx.id),
            tx_hash=orm_tx.tx_hash,
            asset_symbol=orm_tx.asset_symbol,
            type=orm_tx.type,
            amount=orm_tx.amount,
            value_usd=orm_tx.value_usd,
            fee_usd=orm_tx.fee_usd,
            timestamp=_as_utc(orm_tx.timestamp),
            incoming_asset_symbol=orm_tx.incoming_asset_symbol,
            incoming_amount=orm_tx.incoming_amount,
            incoming_value_usd=orm_tx.incoming_value_usd,
            annotation=orm_tx.annotation,
            basis_override=basis_override,
            provenance=Provenance(orm_tx.provenance),
            owner_wallet_address=WalletAddress(owner) if owner is not None else None,
            source=orm_tx.source,
            chain=orm_tx.chain,
            status=TransactionStatus(orm_tx.status),
        )


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
