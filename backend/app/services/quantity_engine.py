"""
quantity_engine.py — Dimensional quantity resolver shared by every ledger screen.

Covers:
  - Coercion of raw form input (numbers or numeric strings) to positive floats
  - Quantity derivation from repetition count + up to three dimensions
  - Amount derivation (quantity × rate)
  - Display rounding: 3 dp for quantities, 2 dp for money

The inspection quantity calculator and the BOQ cost calculator both call
resolve_quantity().
"""

import math
from typing import Any, Optional


QUANTITY_DECIMALS: int = 3
MONEY_DECIMALS: int = 2
DEFAULT_COUNT: float = 1.0


def coerce_positive(value: Any) -> Optional[float]:
    """
    Return ``value`` as a float if it is a finite number > 0, else None.

    Accepts ints, floats and numeric strings ("3.5", " 2 "). Booleans,
    blanks, NaN, infinities, zero and negatives all count as "not provided".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def coerce_count(value: Any) -> float:
    """Repetition count; anything missing or non-positive falls back to 1."""
    count = coerce_positive(value)
    return count if count is not None else DEFAULT_COUNT


def resolve_quantity(
    count: Any = None,
    length: Any = None,
    width: Any = None,
    height: Any = None,
) -> float:
    """
    Derive a scalar quantity, most-dimensional rule first:

        L, W, H  ->  count × L × W × H
        L, W     ->  count × L × W
        L        ->  count × L
        none     ->  count

    Never raises and never returns NaN. A height given without a width is
    ignored, as is a width given without a length.
    """
    n = coerce_count(count)
    l = coerce_positive(length)
    w = coerce_positive(width)
    h = coerce_positive(height)

    if l is not None and w is not None and h is not None:
        return n * l * w * h
    if l is not None and w is not None:
        return n * l * w
    if l is not None:
        return n * l
    return n


def coerce_rate(value: Any) -> Optional[float]:
    """Rates may legitimately be zero; only negatives and junk are dropped."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        rate = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(rate) or rate < 0:
        return None
    return rate


def compute_amount(quantity: float, rate: Any) -> float:
    r = coerce_rate(rate)
    if r is None:
        return 0.0
    return quantity * r


def round_quantity(quantity: float) -> float:
    return round(quantity, QUANTITY_DECIMALS)


def round_money(amount: float) -> float:
    return round(amount, MONEY_DECIMALS)


def format_quantity(quantity: float) -> str:
    return f"{quantity:.{QUANTITY_DECIMALS}f}"


def format_money(amount: float) -> str:
    return f"{amount:.{MONEY_DECIMALS}f}"
