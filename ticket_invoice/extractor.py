# ticket_invoice/extractor.py
from __future__ import annotations

import io
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import pdfplumber
import pytesseract
import requests
from PIL import Image, ImageOps, UnidentifiedImageError

from . import config
from .config_labels import (
    AMOUNT_PATTERNS,
    DATE_PATTERNS,
    IMAGE_SUFFIXES,
    ITEM_PATTERN,
    NIF_PATTERNS,
    NUMBER_PATTERN,
    PDF_SUFFIXES,
)
from .errors import UpstreamError, ValidationError
from .lang_utils import clean_line, extract_lines, parse_decimal
from .models import LineItem, TicketData

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# TEXT PARSING
# ---------------------------------------------------------
def _date_spans(text: str) -> List[tuple]:
    spans = []
    for pattern in DATE_PATTERNS:
        spans.extend(m.span() for m in pattern.finditer(text))
    return spans


def _parse_amount(text: str) -> Optional[Decimal]:
    m = AMOUNT_PATTERNS["total"].search(text)
    if m:
        return parse_decimal(m.group(1))

    matches = list(AMOUNT_PATTERNS["currency"].finditer(text))
    if matches:
        return parse_decimal(matches[-1].group(1))

    # Last resort: the largest number on the ticket, ignoring dates
    dates = _date_spans(text)
    candidates = [
        parse_decimal(m.group(0))
        for m in NUMBER_PATTERN.finditer(text)
        if not any(start <= m.start() < end for start, end in dates)
    ]
    candidates = [c for c in candidates if c is not None]
    return max(candidates) if candidates else None


def _parse_date(text: str) -> Optional[date]:
    for pattern in DATE_PATTERNS:
        for m in pattern.finditer(text):
            day, month, year = m.groups()
            if len(year) == 2:
                year = "20" + year
            try:
                return date(int(year), int(month), int(day))
            except ValueError:
                continue
    return None


def _parse_company_name(text: str) -> Optional[str]:
    lines = extract_lines(text)
    return lines[0] if lines else None


def _parse_nif(text: str) -> Optional[str]:
    for pattern in NIF_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return None


def _parse_items(text: str) -> List[LineItem]:
    items: List[LineItem] = []
    for line in text.splitlines():
        m = ITEM_PATTERN.match(clean_line(line))
        if not m:
            continue
        quantity = parse_decimal(m.group("quantity"))
        unit_price = parse_decimal(m.group("unit_price"))
        if quantity is None or unit_price is None:
            continue
        items.append(
            LineItem(
                description=m.group("description").strip(),
                quantity=quantity,
                unit_price=unit_price,
                total_price=quantity * unit_price,
            )
        )
    return items


def parse_ticket_text(text: str) -> TicketData:
    """Best-effort structured read of OCR output. Never raises."""
    text = text or ""
    return TicketData(
        amount=_parse_amount(text),
        date=_parse_date(text),
        company_name=_parse_company_name(text),
        nif=_parse_nif(text),
        items=_parse_items(text),
        raw_text=text,
    )


# ---------------------------------------------------------
# OCR PROVIDERS
# ---------------------------------------------------------
def prepare_image(content: bytes) -> bytes:
    """Re-encode an upload as an upright RGB JPEG no larger than MAX_IMAGE_SIDE."""
    try:
        img = Image.open(io.BytesIO(content))
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError("The uploaded file is not a readable image") from exc

    img = img.convert("RGB")
    img.thumbnail((config.MAX_IMAGE_SIDE, config.MAX_IMAGE_SIDE))
    out = io.BytesIO()
    img.save(out, format="JPEG", quality=90)
    return out.getvalue()


def extract_text_from_pdf(content: bytes) -> str:
    parts: List[str] = []
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        for page in pdf.pages:
            parts.append(page.extract_text() or "")
    return "\n".join(parts)


def _ocr_space(image: bytes) -> str:
    data = {
        "language": config.OCR_LANGUAGE,
        "isOverlayRequired": "true",
        "apikey": config.OCR_API_KEY,
    }
    files = {"file": ("ticket.jpg", image, "image/jpeg")}
    try:
        response = requests.post(config.OCR_API_URL, data=data, files=files, timeout=config.OCR_TIMEOUT)
        response.raise_for_status()
        result = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("OCR request failed: %s", exc)
        raise UpstreamError("Error processing image") from exc

    parsed = result.get("ParsedResults") or []
    if result.get("IsErroredOnProcessing") or not parsed:
        message = result.get("ErrorMessage") or "Unknown error"
        if isinstance(message, list):
            message = "; ".join(message)
        logger.error("OCR provider returned no text: %s", message)
        raise UpstreamError("Error processing image", detail=f"OCR failed: {message}")

    return parsed[0].get("ParsedText") or ""


def _ocr_tesseract(image: bytes) -> str:
    if config.TESSERACT_CMD:
        pytesseract.pytesseract.tesseract_cmd = config.TESSERACT_CMD
    try:
        return pytesseract.image_to_string(Image.open(io.BytesIO(image)), lang=config.TESSERACT_LANG)
    except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
        logger.error("Tesseract failed: %s", exc)
        raise UpstreamError("Error processing image") from exc


OCR_PROVIDERS = {
    "ocrspace": _ocr_space,
    "tesseract": _ocr_tesseract,
}


def extract_text_from_image(content: bytes) -> str:
    provider = OCR_PROVIDERS.get(config.OCR_PROVIDER)
    if provider is None:
        raise UpstreamError(f"Unknown OCR provider: {config.OCR_PROVIDER}")
    return provider(prepare_image(content))


def extract_text(content: bytes, filename: str = "ticket.jpg") -> str:
    """Plain text of a ticket upload: PDF text layer, otherwise OCR."""
    if not content:
        raise ValidationError("Ticket image is required")
    if len(content) > config.MAX_UPLOAD_MB * 1024 * 1024:
        raise ValidationError(f"File exceeds {config.MAX_UPLOAD_MB} MB")

    suffix = Path(filename or "").suffix.lower()
    if suffix in PDF_SUFFIXES or content[:5] == b"%PDF-":
        return extract_text_from_pdf(content)
    if suffix and suffix not in IMAGE_SUFFIXES:
        raise ValidationError(f"Unsupported file type: {suffix}")
    return extract_text_from_image(content)


def read_ticket(content: bytes, filename: str = "ticket.jpg") -> TicketData:
    text = extract_text(content, filename)
    ticket = parse_ticket_text(text)
    logger.info(
        "Ticket read: amount=%s date=%s items=%d", ticket.amount, ticket.date, len(ticket.items)
    )
    return ticket
