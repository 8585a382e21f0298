from __future__ import annotations

from datetime import datetime
from decimal import Decimal

CENT = Decimal("0.01")


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def format_usd(value: Decimal) -> str:
    cents = value.quantize(CENT)
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents):,.2f}"


def format_date(value: datetime | None) -> str:
    if value is None:
        return "various"
    return value.strftime("%m/%d/%Y")
