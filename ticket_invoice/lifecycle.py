# ticket_invoice/lifecycle.py
"""Invoice lifecycle: ticket requests, approval, rejection and delivery.

    (ticket)  -> PENDING -> APPROVED -> GENERATED -> SENT (resend allowed)
                 PENDING -> REJECTED
    (direct)  -> GENERATED

Every function works inside the caller's session and only flushes; the caller
commits once the whole step succeeded, so a failure anywhere rolls back the
number reservation and status changes together. Approval is the exception: it
commits the generated invoice before emailing it.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import config
from .clients import get_client, upsert_client
from .entities import Company, DeliveryAttempt, Invoice, InvoiceItem, User
from .errors import ConflictError, DuplicateTicketError, NotFoundError, ValidationError
from .fingerprint import find_duplicate, ticket_fingerprint
from .mailer import send_invoice_email
from .models import ClientData, DeliveryOutcome, DirectInvoiceCreate, InvoiceStatus, LineItem, TicketData
from .numbering import NUMBERING_ATTEMPTS, next_number
from .pdf import render_invoice_pdf
from .tax import from_base, split_gross
from .validator import validate_ticket

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "unspecified"

TRANSITIONS = {
    InvoiceStatus.PENDING: {InvoiceStatus.APPROVED, InvoiceStatus.REJECTED},
    InvoiceStatus.APPROVED: {InvoiceStatus.GENERATED},
    InvoiceStatus.GENERATED: {InvoiceStatus.SENT},
    InvoiceStatus.SENT: {InvoiceStatus.SENT},
    InvoiceStatus.REJECTED: set(),
}

APPROVED_STATUSES = (InvoiceStatus.APPROVED, InvoiceStatus.GENERATED, InvoiceStatus.SENT)


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return target in TRANSITIONS.get(current, set())


def transition(invoice: Invoice, target: InvoiceStatus) -> Invoice:
    if not can_transition(invoice.status, target):
        raise ConflictError(
            f"Invoice cannot move from {invoice.status.value} to {target.value}",
            status=invoice.status.value,
        )
    logger.info("Invoice %s: %s -> %s", invoice.id, invoice.status.value, target.value)
    invoice.status = target
    return invoice


# ---------------------------------------------------------
# HELPERS
# ---------------------------------------------------------
def _build_items(items: Iterable[LineItem]) -> List[InvoiceItem]:
    built = []
    for position, item in enumerate(items):
        quantity = item.quantity if item.quantity is not None else Decimal("1")
        unit_price = item.unit_price if item.unit_price is not None else Decimal("0")
        total = item.total_price if item.total_price is not None else quantity * unit_price
        built.append(
            InvoiceItem(
                position=position,
                description=item.description,
                quantity=quantity,
                unit_price=unit_price,
                total_price=total,
            )
        )
    return built


def _is_number_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return "uq_invoice_company_number" in message or "invoices.number" in message


def _numbered(session: Session, company_id: str, year: int, apply: Callable[[str], Invoice]) -> Invoice:
    """Flush ``apply(number)`` with the next free number, retrying on collisions.

    A collision means another request took the same number between our read
    and our write; the unique (company, number) constraint catches it.
    """
    for attempt in range(1, NUMBERING_ATTEMPTS + 1):
        number = next_number(session, company_id, year)
        invoice = apply(number)
        try:
            session.flush()
            return invoice
        except IntegrityError as exc:
            session.rollback()
            if not _is_number_conflict(exc):
                raise
            logger.warning("Invoice number %s taken (attempt %d/%d)", number, attempt, NUMBERING_ATTEMPTS)
    raise ConflictError("Could not reserve an invoice number, please retry")


def _pending_invoice(session: Session, invoice_id: str, company_id: str) -> Invoice:
    invoice = session.scalars(
        select(Invoice).where(
            Invoice.id == invoice_id,
            Invoice.company_id == company_id,
            Invoice.status == InvoiceStatus.PENDING,
        )
    ).first()
    if invoice is None:
        raise NotFoundError("Request not found or already processed")
    return invoice


def _deliver(invoice: Invoice, pdf: bytes, now: datetime) -> DeliveryAttempt:
    ok, detail = send_invoice_email(invoice, pdf)
    attempt = DeliveryAttempt(
        attempted_at=now,
        recipient=invoice.client.email,
        outcome=DeliveryOutcome.DELIVERED if ok else DeliveryOutcome.FAILED,
        detail=detail,
    )
    invoice.deliveries.append(attempt)
    if ok:
        logger.info("Invoice %s delivered to %s", invoice.number, attempt.recipient)
    else:
        logger.warning("Invoice %s delivery failed: %s", invoice.number, detail)
    return attempt


# ---------------------------------------------------------
# CREATION
# ---------------------------------------------------------
def submit_ticket(
    session: Session,
    company_id: str,
    client_data: ClientData,
    ticket: TicketData,
    requester_id: Optional[str] = None,
) -> Invoice:
    """Turn a read ticket into a PENDING invoice request for ``company_id``."""
    ticket = validate_ticket(ticket)

    company = session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")

    fingerprint = ticket_fingerprint(ticket.date, ticket.amount, company.id)
    existing = find_duplicate(session, fingerprint, company.id)
    if existing is not None:
        raise DuplicateTicketError(existing)

    client = upsert_client(session, company.id, client_data, user_id=requester_id)
    amounts = split_gross(ticket.amount)

    invoice = Invoice(
        status=InvoiceStatus.PENDING,
        company_id=company.id,
        client_id=client.id,
        requester_id=requester_id,
        issue_date=date.today(),
        base_amount=amounts.base,
        tax_rate=config.DEFAULT_TAX_RATE,
        ticket_date=ticket.date,
        ticket_amount=ticket.amount,
        ticket_hash=fingerprint,
        ocr_data=ticket.model_dump(mode="json"),
        items=_build_items(ticket.items),
    )
    session.add(invoice)
    try:
        session.flush()
    except IntegrityError:
        # Same ticket submitted concurrently; report the winner
        session.rollback()
        existing = find_duplicate(session, fingerprint, company_id)
        if existing is not None:
            raise DuplicateTicketError(existing)
        raise

    logger.info("Ticket request %s created for company %s (%s)", invoice.id, company.name, ticket.amount)
    return invoice


def create_invoice(
    session: Session,
    company_id: str,
    user_id: str,
    payload: DirectInvoiceCreate,
    now: Optional[datetime] = None,
) -> Invoice:
    """Company-issued invoice, numbered on creation and ready to be sent."""
    now = now or datetime.now()
    client = get_client(session, company_id, payload.client_id)
    client_id = client.id

    items = list(payload.items)
    if payload.base_amount is not None:
        base = payload.base_amount
    elif items:
        base = sum((item.total_price for item in _build_items(items)), Decimal("0"))
    else:
        raise ValidationError("Either items or base_amount is required")
    if base < 0:
        raise ValidationError("Base amount cannot be negative")

    rate = payload.tax_rate if payload.tax_rate is not None else config.DEFAULT_TAX_RATE
    amounts = from_base(base, rate)

    def apply(number: str) -> Invoice:
        invoice = Invoice(
            number=number,
            status=InvoiceStatus.GENERATED,
            company_id=company_id,
            client_id=client_id,
            approver_id=user_id,
            issue_date=payload.issue_date or now.date(),
            base_amount=amounts.base,
            tax_rate=rate,
            description=payload.description,
            approved_at=now,
            generated_at=now,
            items=_build_items(items),
        )
        session.add(invoice)
        return invoice

    invoice = _numbered(session, company_id, now.year, apply)
    logger.info("Invoice %s issued directly by company %s", invoice.number, company_id)
    return invoice


# ---------------------------------------------------------
# TRANSITIONS
# ---------------------------------------------------------
def approve_invoice(
    session: Session,
    invoice_id: str,
    company_id: str,
    approver_id: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Invoice:
    """PENDING -> APPROVED -> GENERATED: number, PDF, email.

    Unlike the other steps this one commits: the approval is committed after
    the PDF renders and before the email goes out, so a client never receives
    a number that was later rolled back. A PDF failure leaves the request
    PENDING. A failed email does not undo the approval: the failed attempt is
    recorded on ``invoice.deliveries`` (flushed, for the caller to commit) and
    the invoice can be resent.
    """
    now = now or datetime.now()

    def apply(number: str) -> Invoice:
        invoice = _pending_invoice(session, invoice_id, company_id)
        transition(invoice, InvoiceStatus.APPROVED)
        invoice.number = number
        invoice.approver_id = approver_id
        invoice.approved_at = now
        invoice.issue_date = now.date()
        invoice.description = notes or None
        return invoice

    invoice = _numbered(session, company_id, now.year, apply)

    pdf = render_invoice_pdf(invoice)
    transition(invoice, InvoiceStatus.GENERATED)
    invoice.generated_at = now
    session.commit()

    _deliver(invoice, pdf, now)
    session.flush()
    return invoice


def reject_invoice(
    session: Session,
    invoice_id: str,
    company_id: str,
    reason: Optional[str] = None,
) -> Invoice:
    invoice = _pending_invoice(session, invoice_id, company_id)
    transition(invoice, InvoiceStatus.REJECTED)
    invoice.rejection_reason = reason if reason and reason.strip() else DEFAULT_REJECTION_REASON
    session.flush()
    return invoice


def send_invoice(
    session: Session,
    invoice_id: str,
    company_id: str,
    now: Optional[datetime] = None,
) -> DeliveryAttempt:
    """(Re)send a generated invoice; SENT only when the email went out.

    Returns the recorded attempt; the caller decides how to report a failure
    after committing it.
    """
    now = now or datetime.now()
    invoice = get_company_invoice(session, invoice_id, company_id)
    if not can_transition(invoice.status, InvoiceStatus.SENT):
        raise ConflictError("Only generated invoices can be sent", status=invoice.status.value)

    pdf = render_invoice_pdf(invoice)
    attempt = _deliver(invoice, pdf, now)
    if attempt.outcome == DeliveryOutcome.DELIVERED:
        transition(invoice, InvoiceStatus.SENT)
        invoice.sent_at = now
    session.flush()
    return attempt


# ---------------------------------------------------------
# READS
# ---------------------------------------------------------
def get_company_invoice(session: Session, invoice_id: str, company_id: str) -> Invoice:
    invoice = session.scalars(
        select(Invoice).where(Invoice.id == invoice_id, Invoice.company_id == company_id)
    ).first()
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def get_invoice_for_user(session: Session, invoice_id: str, user: User) -> Invoice:
    """Visible to the requester and to the issuing company only."""
    invoice = session.get(Invoice, invoice_id)
    if invoice is None or not (
        (invoice.requester_id and invoice.requester_id == user.id)
        or (user.company_id and invoice.company_id == user.company_id)
    ):
        raise NotFoundError("Invoice not found")
    return invoice


def list_requests_for_user(session: Session, user_id: str) -> List[Invoice]:
    return list(
        session.scalars(
            select(Invoice).where(Invoice.requester_id == user_id).order_by(Invoice.created_at.desc())
        )
    )


def list_company_invoices(
    session: Session,
    company_id: str,
    statuses: Iterable[InvoiceStatus],
) -> List[Invoice]:
    return list(
        session.scalars(
            select(Invoice)
            .where(Invoice.company_id == company_id, Invoice.status.in_(list(statuses)))
            .order_by(Invoice.created_at.desc())
        )
    )
