"""
Money helpers.

Amounts are persisted as integer cents. Arithmetic between the store and an
externally visible figure runs on Decimal currency units so that payment
ratios and percentages never round mid-computation; round_money() is applied
once, at the boundary.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")
BPS_PER_UNIT = Decimal("10000")

_AMOUNT_RE = re.compile(r"-?\d[\d,]*(?:\.\d+)?|-?\.\d+")


def from_cents(cents: int | None) -> Decimal:
    if cents is None:
        return ZERO
    return Decimal(int(cents)) / HUNDRED


def round_money(value: Decimal | int | float | None) -> Decimal:
    if value is None:
        return ZERO.quantize(CENT)
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal | int | float | None) -> int:
    return int(round_money(value) * HUNDRED)


def bps_fraction(bps: int | None) -> Decimal:
    """Basis points to a multiplier (1250 bps -> 0.125)."""
    return Decimal(int(bps or 0)) / BPS_PER_UNIT


def parse_amount(text: str | None) -> Decimal | None:
    """
    Parse a currency-formatted amount such as "$1,070.50" or "26.85".

    Returns None when no amount can be read.
    """
    if not text:
        return None
    match = _AMOUNT_RE.search(text)
    if not match:
        return None
    try:
        return Decimal(match.group(0).replace(",", ""))
    except InvalidOperation:
        return None
