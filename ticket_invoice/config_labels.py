# ticket_invoice/config_labels.py
"""Label patterns and constants for field extraction from tickets."""
from __future__ import annotations

import re

# A numeric token; decimal comma or point, no thousands grouping
NUMBER_TOKEN = r"\d+(?:[.,]\d+)?"
NUMBER_PATTERN = re.compile(NUMBER_TOKEN)

CURRENCY_MARKER = r"(?:€|EUR\b)"

AMOUNT_PATTERNS = {
    # "TOTAL 24,20", "Total: 24.20 €", "TOTAL EUR 24,20" but not "SUBTOTAL"
    "total": re.compile(
        r"\btotal\b[:\s]*(?:" + CURRENCY_MARKER + r"[:\s]*)?(" + NUMBER_TOKEN + r")", re.I
    ),
    "currency": re.compile(r"(" + NUMBER_TOKEN + r")\s*" + CURRENCY_MARKER, re.I),
}

# DD/MM/YYYY, DD-MM-YYYY, DD.MM.YYYY then the 2-digit year variants
DATE_PATTERNS = [
    re.compile(r"(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})(?!\d)"),
    re.compile(r"(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2})(?!\d)"),
]

# <description> <quantity> [x] <unit price>[€], anything after it (line total) ignored
ITEM_PATTERN = re.compile(
    r"^(?P<description>.+?)\s+"
    r"(?P<quantity>" + NUMBER_TOKEN + r")"
    r"(?:\s*[xX]\s*|\s+)"
    r"(?P<unit_price>" + NUMBER_TOKEN + r")"
    r"\s*€?"
)

# Spanish tax ids: CIF, NIF, NIE
NIF_PATTERNS = [
    re.compile(r"\b([A-Z]\d{8})\b"),
    re.compile(r"\b(\d{8}[A-Z])\b"),
    re.compile(r"\b([A-Z]\d{7}[A-Z])\b"),
]

PDF_SUFFIXES = {".pdf"}
IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tif", ".tiff"}
