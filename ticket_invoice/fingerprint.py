# ticket_invoice/fingerprint.py
"""Ticket fingerprints: one invoice per (date, amount, company)."""
from __future__ import annotations

import hashlib
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from .entities import Invoice
from .lang_utils import decimal_str


def _iso_timestamp(value: Union[date, datetime]) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return f"{value.isoformat()}T00:00:00.000Z"


def ticket_fingerprint(ticket_date: Union[date, datetime], amount: Decimal, company_id: str) -> str:
    """SHA-256 hex digest of the ticket date, amount and issuing company.

    Two genuinely different purchases with the same date and amount at the
    same company collide; that false positive is accepted.
    """
    amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    data = f"{_iso_timestamp(ticket_date)}_{decimal_str(amount)}_{company_id}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def find_duplicate(session: Session, fingerprint: str, company_id: str) -> Optional[Invoice]:
    return session.scalars(
        select(Invoice).where(Invoice.company_id == company_id, Invoice.ticket_hash == fingerprint)
    ).first()
