# ticket_invoice/config.py
"""Runtime settings read from the environment (and a local .env file)."""
from __future__ import annotations

import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


def clean_env_value(value: str | None) -> str:
    """Strip whitespace and surrounding quotes some hosts add to env values."""
    if not value:
        return ""
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return value.strip()


def _env(key: str, default: str = "") -> str:
    return clean_env_value(os.getenv(key)) or default


# Persistence
DATABASE_URL = _env("DATABASE_URL", "sqlite:///./data/invoices.db")

# OCR: "ocrspace" (HTTP API) or "tesseract" (local binary)
OCR_PROVIDER = _env("OCR_PROVIDER", "ocrspace").lower()
OCR_API_URL = _env("OCR_API_URL", "https://api.ocr.space/parse/image")
OCR_API_KEY = _env("OCR_API_KEY")
OCR_LANGUAGE = _env("OCR_LANGUAGE", "spa")
OCR_TIMEOUT = int(_env("OCR_TIMEOUT", "60"))
TESSERACT_CMD = _env("TESSERACT_CMD")
TESSERACT_LANG = _env("TESSERACT_LANG", "spa")

# Uploads
MAX_UPLOAD_MB = int(_env("MAX_UPLOAD_MB", "10"))
MAX_IMAGE_SIDE = int(_env("MAX_IMAGE_SIDE", "2000"))

# Email (SMTP)
SMTP_HOST = _env("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(_env("SMTP_PORT", "587"))
SMTP_EMAIL = _env("SMTP_EMAIL")
SMTP_PASSWORD = _env("SMTP_PASSWORD")
SMTP_TIMEOUT = int(_env("SMTP_TIMEOUT", "30"))

FRONTEND_URL = _env("FRONTEND_URL", "http://localhost:5173")

# Invoicing
DEFAULT_TAX_RATE = Decimal(_env("DEFAULT_TAX_RATE", "21"))

LOG_LEVEL = _env("LOG_LEVEL", "INFO")
