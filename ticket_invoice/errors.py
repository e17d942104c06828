# ticket_invoice/errors.py
"""Error taxonomy for the invoicing domain.

Every error carries an HTTP status code and an optional context mapping that
is rendered next to the message, so callers get enough to react on (for
example the invoice that already billed a ticket).
"""
from __future__ import annotations

from typing import Any, Dict


class InvoicingError(Exception):
    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.context}


class ValidationError(InvoicingError):
    """Missing or malformed input; nothing was changed."""

    status_code = 400


class AuthError(InvoicingError):
    status_code = 401


class ForbiddenError(InvoicingError):
    """The acting user has the wrong role for the route."""

    status_code = 403


class NotFoundError(InvoicingError):
    """Absent, or owned by someone else; both look the same to the caller."""

    status_code = 404


class ConflictError(InvoicingError):
    status_code = 409


class DuplicateTicketError(ConflictError):
    def __init__(self, existing) -> None:
        super().__init__(
            "This ticket has already been invoiced",
            existing_invoice={
                "id": existing.id,
                "number": existing.number,
                "status": existing.status.value,
            },
        )
        self.existing = existing


class UpstreamError(InvoicingError):
    """OCR provider or mail transport failed."""

    status_code = 502
