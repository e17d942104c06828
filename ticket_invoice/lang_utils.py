# ticket_invoice/lang_utils.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Optional


def parse_decimal(raw: str | None) -> Optional[Decimal]:
    """Parse a ticket number token, accepting a decimal comma."""
    if not raw:
        return None
    s = raw.strip().replace(",", ".")
    try:
        return Decimal(s)
    except InvalidOperation:
        return None


def decimal_str(value: Decimal) -> str:
    """Plain decimal string without trailing zeros: 24.20 -> '24.2', 20 -> '20'."""
    return format(value.normalize(), "f")


def clean_line(line: str) -> str:
    return line.strip().replace("\u00a0", " ")


def extract_lines(text: str) -> list[str]:
    """Split text into cleaned non-empty lines."""
    return [l for l in (clean_line(x) for x in text.splitlines()) if l]
