"""Heuristic receipt text parser.

Turns raw OCR output into ``ReceiptDetails``.  The parser never fails:
whenever a field cannot be determined it falls back to a documented
default (``Unknown Vendor``, today's date, ``USD``, a single
``General Items`` line).

The steps mirror how a person skims a receipt:

1. the vendor is one of the first few lines that is not a header,
2. the first date-shaped token anywhere is the receipt date,
3. the first currency signature in priority order wins,
4. every line except the last that carries a ``12.34`` style price is a
   line item unless it is an aggregate line (TOTAL, TAX, ...),
5. tax is a flat 10% of the item subtotal.

The parser ignores any tax or total printed on the
receipt; totals are always recomputed from the items.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from typing import List, Optional

from receipt_scanner.models.schemas import ReceiptDetails, ReceiptItem
from receipt_scanner.utils.helpers import round_money, today_locale_string

logger = logging.getLogger(__name__)

UNKNOWN_VENDOR = "Unknown Vendor"
DEFAULT_CURRENCY = "USD"
GENERAL_ITEMS = "General Items"
TAX_RATE = 0.10

VENDOR_SCAN_LINES = 5

_LEADING_DIGIT = re.compile(r"^\d")
_ALL_CAPS = re.compile(r"^[A-Z\s]+$")
_HEADER_KEYWORDS = re.compile(r"^(Rech|Receipt|Invoice|Bill|Date|Time|Table|Tisch)", re.IGNORECASE)
_CORPORATE_SUFFIX = re.compile(r"\s+(GmbH|AG|Ltd|Inc|Corp|LLC|Restaurant|Hotel|Cafe|Bar)$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

_SHORT_MONTHS = "Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec"
_LONG_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
)

# Tried in order; the first pattern with any match wins.
DATE_PATTERNS: List[re.Pattern[str]] = [
    re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}"),  # D/M/Y or M/D/Y
    re.compile(r"\d{4}[/\-]\d{1,2}[/\-]\d{1,2}"),  # Y/M/D
    re.compile(rf"\d{{1,2}}\s+({_SHORT_MONTHS})\s+\d{{2,4}}", re.IGNORECASE),  # 15 Jan 2024
    re.compile(rf"\d{{1,2}}\s+({_LONG_MONTHS})\s+\d{{2,4}}", re.IGNORECASE),  # 15 January 2024
]

# Priority order matters: a Swiss receipt priced in "$" is still CHF.
CURRENCY_PATTERNS: List[tuple[str, re.Pattern[str]]] = [
    ("CHF", re.compile(r"\bCHF\b|\bSwiss\b|\bSchweiz\b")),
    ("USD", re.compile(r"\$|\bUSD\b|\bUS\$\b")),
    ("EUR", re.compile(r"€|\bEUR\b")),
    ("GBP", re.compile(r"£|\bGBP\b")),
    ("CAD", re.compile(r"\bCAD\b")),
    ("AUD", re.compile(r"\bAUD\b")),
]

_PRICE = re.compile(r"(?:CHF|USD|EUR|£|\$)?\s*(\d+[.,]\d{2})")
_AGGREGATE_LINE = re.compile(r"^(TOTAL|TAX|SUBTOTAL|BALANCE|MwSt|VAT)", re.IGNORECASE)


def split_lines(text: str) -> List[str]:
    """Split on line breaks and drop blank lines (content is not trimmed)."""
    return [line for line in text.splitlines() if line.strip()]


def extract_vendor_name(lines: List[str]) -> str:
    for raw in lines[:VENDOR_SCAN_LINES]:
        line = raw.strip()
        if len(line) <= 3:
            continue
        if _LEADING_DIGIT.match(line) or _ALL_CAPS.match(line) or _HEADER_KEYWORDS.match(line):
            continue
        vendor = _WHITESPACE.sub(" ", line).strip()
        vendor = _CORPORATE_SUFFIX.sub("", vendor)
        if vendor:
            return vendor
    return UNKNOWN_VENDOR


def extract_date(text: str, today: Optional[dt.date] = None) -> str:
    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return today_locale_string(today)


def extract_currency(text: str) -> str:
    for code, pattern in CURRENCY_PATTERNS:
        if pattern.search(text):
            return code
    return DEFAULT_CURRENCY


def extract_items(lines: List[str]) -> List[ReceiptItem]:
    """Collect priced lines, skipping the final line and aggregate rows."""
    items: List[ReceiptItem] = []
    for line in lines[:-1]:
        match = _PRICE.search(line)
        if not match:
            continue
        price = float(match.group(1).replace(",", "."))
        name = line.replace(match.group(0), "", 1).strip()
        if len(name) <= 2 or _AGGREGATE_LINE.match(name):
            continue
        items.append(ReceiptItem(item_name=name, item_cost=price))
    if not items:
        return [ReceiptItem(item_name=GENERAL_ITEMS, item_cost=0)]
    return items


def calculate_totals(items: List[ReceiptItem]) -> tuple[float, float]:
    """Return ``(tax, total)`` using the flat heuristic tax rate."""
    subtotal = sum(item.item_cost for item in items)
    tax = subtotal * TAX_RATE
    total = subtotal + tax
    return round_money(tax), round_money(total)


def parse_receipt_text(text: str, today: Optional[dt.date] = None) -> ReceiptDetails:
    """Parse raw recognised text into ``ReceiptDetails``.

    ``today`` only exists so callers (and tests) can pin the fallback
    date; it defaults to the current local date.
    """
    text = text or ""
    lines = split_lines(text)

    vendor_name = extract_vendor_name(lines)
    date = extract_date(text, today)
    currency = extract_currency(text)
    items = extract_items(lines)
    tax, total = calculate_totals(items)

    logger.info("Parsed receipt: %s - %s - %s - Total: %s", vendor_name, date, currency, total)
    return ReceiptDetails(
        date=date,
        currency=currency,
        vendor_name=vendor_name,
        receipt_items=items,
        tax=tax,
        total=total,
    )
