"""Miscellaneous helper functions."""

from __future__ import annotations

import datetime as dt
import math
from typing import Any, Optional


def today_locale_string(today: Optional[dt.date] = None) -> str:
    """Return a date in US short locale form (``M/D/YYYY``, no padding).

    Used as the fallback receipt date when nothing date-shaped appears in
    OCR text.
    """
    today = today or dt.date.today()
    return f"{today.month}/{today.day}/{today.year}"


def today_iso(today: Optional[dt.date] = None) -> str:
    """Return a date as ``YYYY-MM-DD``."""
    return (today or dt.date.today()).isoformat()


def round_money(value: float) -> float:
    """Round to two decimals with halves going up.

    ``round()`` uses banker's rounding, which would turn 0.125 into 0.12;
    receipts expect 0.13.
    """
    return math.floor(value * 100 + 0.5) / 100


def is_number(value: Any) -> bool:
    """True for finite ints and floats; bools, numeric strings, NaN and infinities are rejected."""
    if isinstance(value, bool):
        return False
    if not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
