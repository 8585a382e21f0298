from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class UnifiedTransactionOrm(Base):
    __tablename__ = "unified_transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    tx_hash: Mapped[str | None] = mapped_column(String, nullable=True)

    asset_symbol: Mapped[str | None] = mapped_column(String, nullable=True)
    type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    value_usd: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    fee_usd: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    # Nullable so malformed rows survive a round trip and are counted by the engine.
    timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    incoming_asset_symbol: Mapped[str | None] = mapped_column(String, nullable=True)
    incoming_amount: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    incoming_value_usd: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)

    annotation: Mapped[str | None] = mapped_column(Text, nullable=True)
    basis_override_cost_usd: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    basis_override_acquired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    provenance: Mapped[str] = mapped_column(String, nullable=False)
    owner_wallet_address: Mapped[str | None] = mapped_column(String, nullable=True)
    source: Mapped[str | None] = mapped_column(String, nullable=True)
    chain: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index("ix_unified_transactions_owner", "owner_wallet_address"),
        Index("ix_unified_transactions_timestamp", "timestamp"),
    )
