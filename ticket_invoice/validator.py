# ticket_invoice/validator.py
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Optional

from .errors import ValidationError
from .models import ClientData, RegisterRequest, TicketData

MIN_PASSWORD_LENGTH = 6


def normalize_nif(nif: Optional[str]) -> str:
    """Canonical NIF/CIF form used for storage, lookups and uniqueness."""
    return "".join((nif or "").split()).replace("-", "").upper()


def _safe_str(s: Optional[str]) -> str:
    return (s or "").strip()


def _missing(obj, fields: Iterable[str]) -> List[str]:
    return [f"missing_field: {name}" for name in fields if not _safe_str(getattr(obj, name, None))]


def _check_ticket(ticket: TicketData) -> List[str]:
    errors: List[str] = []
    if ticket.amount is None:
        errors.append("missing_field: amount")
    elif ticket.amount <= Decimal("0"):
        errors.append("business_rule_failed: amount_not_positive")
    if ticket.date is None:
        errors.append("missing_field: date")
    return errors


def validate_ticket(ticket: TicketData) -> TicketData:
    """Amount and date are mandatory before a ticket can become an invoice."""
    errors = _check_ticket(ticket)
    if errors:
        raise ValidationError(
            "Could not extract the required data from the ticket (date and/or amount)",
            errors=errors,
            ocr_data=ticket.model_dump(mode="json"),
        )
    return ticket


def validate_client(data: ClientData, require_address: bool = False) -> ClientData:
    required = ["nif", "name", "email"] + (["address"] if require_address else [])
    errors = _missing(data, required)
    if _safe_str(data.email) and "@" not in data.email:
        errors.append("format: email_invalid")
    if errors:
        raise ValidationError("Invalid client data", errors=errors)
    return data.model_copy(update={"nif": normalize_nif(data.nif), "email": data.email.strip()})


def validate_password(password: Optional[str]) -> str:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def validate_registration(req: RegisterRequest) -> RegisterRequest:
    errors = _missing(req, ["email", "password", "name", "nif", "address", "postal_code"])
    if errors:
        raise ValidationError(
            "Email, password, name, NIF, address and postal code are required", errors=errors
        )
    validate_password(req.password)
    return req.model_copy(update={"nif": normalize_nif(req.nif), "email": req.email.strip().lower()})
