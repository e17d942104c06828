# ticket_invoice/tax.py
"""Tax arithmetic.

Rates are always percentages (``21`` means 21 %). Amounts keep full Decimal
precision; rounding to cents happens only in :func:`money`, at display time.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple, Optional, Union

from . import config

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")


class Amounts(NamedTuple):
    base: Decimal
    tax: Decimal
    total: Decimal


def _dec(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 24.2 from turning into 24.199999...
    return Decimal(str(value))


def _rate(rate: Optional[Number]) -> Decimal:
    return config.DEFAULT_TAX_RATE if rate is None else _dec(rate)


def split_gross(gross: Number, rate: Optional[Number] = None) -> Amounts:
    """Split a tax-inclusive ticket amount into base and tax."""
    gross = _dec(gross)
    base = gross / (1 + _rate(rate) / 100)
    return Amounts(base=base, tax=gross - base, total=gross)


def from_base(base: Number, rate: Optional[Number] = None) -> Amounts:
    """Add tax on top of a tax-exclusive base amount."""
    base = _dec(base)
    tax = base * _rate(rate) / 100
    return Amounts(base=base, tax=tax, total=base + tax)


def money(value: Number) -> Decimal:
    return _dec(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Number, symbol: str = "€") -> str:
    """Two-decimal rendering used on PDFs and emails: ``24.20 €``."""
    return f"{money(value)} {symbol}".strip()
