"""Turn free-text transaction notes into structured fields.

CSV tax exports carry the real cost basis and purchase date of a sale in the
notes column, and swap rows describe both legs as "1.5 ETH → 3000 USDC". The
engine never reads notes, so they are parsed here once at import time.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from domain.transactions import BasisOverride

logger = logging.getLogger(__name__)

_COST_BASIS_RE = re.compile(r"Cost Basis:\s*\$?([\d,]+(?:\.\d+)?)", re.IGNORECASE)
_PURCHASED_RE = re.compile(r"Purchased:\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE)
_SWAP_RE = re.compile(
    r"(?P<out_amount>[\d,]*\.?\d+)\s*(?P<out_asset>[A-Za-z0-9.]+)\s*(?:→|->)\s*"
    r"(?P<in_amount>[\d,]*\.?\d+)\s*(?P<in_asset>[A-Za-z0-9.]+)"
)


@dataclass(frozen=True)
class SwapLegs:
    outgoing_asset: str
    outgoing_amount: Decimal
    incoming_asset: str
    incoming_amount: Decimal


def extract_basis_override(text: str | None) -> BasisOverride | None:
    if not text:
        return None

    cost_match = _COST_BASIS_RE.search(text)
    if cost_match is None:
        return None

    try:
        cost_basis = Decimal(cost_match.group(1).replace(",", ""))
    except InvalidOperation:
        logger.warning("Ignoring unparsable cost basis in note %r", text)
        return None

    acquired_at: datetime | None = None
    purchased_match = _PURCHASED_RE.search(text)
    if purchased_match is not None:
        try:
            acquired_at = datetime.strptime(purchased_match.group(1), "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError:
            logger.warning("Ignoring invalid purchase date in note %r", text)

    return BasisOverride(cost_basis_usd=cost_basis, acquired_at=acquired_at)


def extract_swap_legs(text: str | None) -> SwapLegs | None:
    if not text:
        return None

    match = _SWAP_RE.search(text)
    if match is None:
        return None

    try:
        outgoing_amount = Decimal(match.group("out_amount").replace(",", ""))
        incoming_amount = Decimal(match.group("in_amount").replace(",", ""))
    except InvalidOperation:
        return None

    return SwapLegs(
        outgoing_asset=match.group("out_asset").upper(),
        outgoing_amount=outgoing_amount,
        incoming_asset=match.group("in_asset").upper(),
        incoming_amount=incoming_amount,
    )
