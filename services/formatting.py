# services/formatting.py

import re
from datetime import date, datetime
from decimal import Decimal

_NON_AMOUNT_CHARS = re.compile(r"[^0-9.]")


def normalize_amount_string(raw):
    """
    Canonicalize a typed amount to exactly two decimal places.

    Everything except ASCII digits and '.' is dropped. The first point splits
    whole from fraction; any later points are removed and their digits folded
    into the fraction. The fraction is truncated (not rounded) to 2 digits and
    padded with zeros. Applied when the amount field loses focus.

        "12.5"   -> "12.50"
        "7"      -> "7.00"
        "3.999"  -> "3.99"
        "1.2.34" -> "1.23"
    """
    clean = _NON_AMOUNT_CHARS.sub("", raw or "")
    whole, point, fraction = clean.partition(".")
    fraction = fraction.replace(".", "")
    whole = whole or "0"
    if not point:
        return f"{whole}.00"
    return f"{whole}.{fraction[:2].ljust(2, '0')}"


def format_currency(amount):
    """Format a number as US dollars, e.g. $1,234.50 or -$5.00."""
    value = Decimal(str(amount if amount is not None else 0)).quantize(Decimal("0.01"))
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def parse_date(value):
    """Parse a YYYY-MM-DD string (or pass a date through). Returns None if invalid."""
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def format_date(value):
    """Short display date: '2024-01-15' -> 'Jan 15, 2024'."""
    parsed = parse_date(value)
    if parsed is None:
        return value or ""
    return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"


def month_label(value):
    """Long month label used for month grouping: '2024-01-15' -> 'January 2024'."""
    parsed = parse_date(value)
    if parsed is None:
        return ""
    return parsed.strftime("%B %Y")
