# ticket_invoice/logging_utils.py
"""Logging setup shared by the API, the CLI and the tests."""
from __future__ import annotations

import logging

from . import config


def configure_logging(level: str | None = None) -> None:
    """Initialize basic logging with a shared format and log level.

    The level can be given directly or via ``LOG_LEVEL`` (defaults to INFO).
    """
    resolved_level = (level or config.LOG_LEVEL or "INFO").upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Keep request-level chatter out of the service log
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("pdfminer").setLevel(logging.WARNING)
