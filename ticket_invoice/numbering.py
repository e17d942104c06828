# ticket_invoice/numbering.py
"""Per-company, per-year invoice numbers: 2024-001, 2024-002, ..."""
from __future__ import annotations

import re
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from .entities import Invoice

# Bounded retries when a concurrent writer takes the same number
NUMBERING_ATTEMPTS = 3

NUMBER_RE = re.compile(r"^(\d{4})-(\d+)$")


def format_number(year: int, sequence: int) -> str:
    # Minimum width only; 1000 renders as 2024-1000
    return f"{year}-{sequence:03d}"


def parse_number(number: Optional[str]) -> Optional[Tuple[int, int]]:
    m = NUMBER_RE.match(number or "")
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def next_number(session: Session, company_id: str, year: int) -> str:
    """Next free number for the company in ``year``.

    Suffixes are compared numerically, so 2024-1000 follows 2024-999.
    """
    numbers = session.scalars(
        select(Invoice.number).where(
            Invoice.company_id == company_id,
            Invoice.number.like(f"{year}-%"),
        )
    ).all()

    last = 0
    for number in numbers:
        parsed = parse_number(number)
        if parsed and parsed[0] == year:
            last = max(last, parsed[1])
    return format_number(year, last + 1)
