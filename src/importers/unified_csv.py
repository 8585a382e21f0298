from __future__ import annotations

import csv
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path

from domain.transactions import (
    Provenance,
    TransactionId,
    TransactionStatus,
    UnifiedTransaction,
    WalletAddress,
)
from importers.annotations import extract_basis_override, extract_swap_legs

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"timestamp", "type", "asset_symbol", "amount", "value_usd"}


def load_transactions(csv_path: Path, *, provenance: Provenance = Provenance.CSV_IMPORT) -> list[UnifiedTransaction]:
    """Load unified transactions from a fixed-column CSV file.

    Required columns: timestamp,type,asset_symbol,amount,value_usd
    Optional columns: id,tx_hash,fee_usd,incoming_asset_symbol,incoming_amount,
    incoming_value_usd,notes,provenance,owner_wallet_address,source,chain,status

    Rows with a blank timestamp or asset are loaded as-is; the engine skips and
    counts them. Swap legs and cost basis overrides written as free text in
    `notes` (or in `amount` as "1.5 ETH → 3000 USDC") become structured fields.
    """

    with csv_path.open(newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise ValueError(f"Transactions CSV {csv_path} is empty or missing headers")

        missing = REQUIRED_COLUMNS - set(reader.fieldnames)
        if missing:
            raise ValueError(f"Transactions CSV {csv_path} missing required columns: {', '.join(sorted(missing))}")

        transactions: list[UnifiedTransaction] = []
        # Data rows start on line 2, right after the header.
        for line_number, row in enumerate(reader, start=2):
            try:
                transactions.append(_parse_row(row, csv_path=csv_path, line_number=line_number, provenance=provenance))
            except (ValueError, InvalidOperation) as exc:
                raise ValueError(f"Transactions CSV {csv_path} line {line_number}: {exc}") from exc

    logger.info("Loaded %d transactions from %s", len(transactions), csv_path)
    return transactions


def _parse_row(
    row: dict[str, str],
    *,
    csv_path: Path,
    line_number: int,
    provenance: Provenance,
) -> UnifiedTransaction:
    notes = _text(row.get("notes"))
    raw_amount = _text(row.get("amount")) or ""
    asset_symbol = _text(row.get("asset_symbol"))

    incoming_asset = _text(row.get("incoming_asset_symbol"))
    incoming_amount = _parse_decimal(row.get("incoming_amount"))
    amount: Decimal | None

    swap_legs = extract_swap_legs(raw_amount) or extract_swap_legs(notes)
    if swap_legs is not None and incoming_asset is None:
        incoming_asset = swap_legs.incoming_asset
        incoming_amount = swap_legs.incoming_amount

    if "→" in raw_amount or "->" in raw_amount:
        if swap_legs is None:
            raise ValueError(f"cannot parse swap amount {raw_amount!r}")
        amount = swap_legs.outgoing_amount
        if asset_symbol is None or "→" in asset_symbol:
            asset_symbol = swap_legs.outgoing_asset
    else:
        amount = _parse_decimal(raw_amount)

    tx_hash = _text(row.get("tx_hash"))
    row_id = _text(row.get("id")) or tx_hash or f"{csv_path.name}:{line_number}"

    return UnifiedTransaction(
        id=TransactionId(row_id),
        tx_hash=tx_hash,
        asset_symbol=asset_symbol,
        type=(row.get("type") or "").strip(),
        amount=amount if amount is not None else Decimal(0),
        value_usd=_parse_decimal(row.get("value_usd")) or Decimal(0),
        fee_usd=_parse_decimal(row.get("fee_usd")),
        timestamp=_parse_timestamp(row.get("timestamp")),
        incoming_asset_symbol=incoming_asset,
        incoming_amount=incoming_amount,
        incoming_value_usd=_parse_decimal(row.get("incoming_value_usd")),
        annotation=notes,
        basis_override=extract_basis_override(notes),
        provenance=Provenance(_text(row.get("provenance")) or provenance),
        owner_wallet_address=_wallet(row.get("owner_wallet_address")),
        source=_text(row.get("source")),
        chain=_text(row.get("chain")),
        status=TransactionStatus((_text(row.get("status")) or TransactionStatus.CONFIRMED).lower()),
    )


def _text(raw: str | None) -> str | None:
    if raw is None:
        return None
    normalized = raw.strip()
    return normalized or None


def _wallet(raw: str | None) -> WalletAddress | None:
    value = _text(raw)
    return WalletAddress(value) if value is not None else None


def _parse_decimal(raw: str | None) -> Decimal | None:
    value = _text(raw)
    if value is None:
        return None
    return Decimal(value.replace(",", "").replace("$", ""))


def _parse_timestamp(raw: str | None) -> datetime | None:
    normalized = _text(raw)
    if normalized is None:
        return None
    if normalized.endswith(("Z", "z")):
        normalized = f"{normalized[:-1]}+00:00"
    ts = datetime.fromisoformat(normalized)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
