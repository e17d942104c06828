# ticket_invoice/companies.py
from __future__ import annotations

from decimal import Decimal
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .entities import Client, Company, Invoice
from .errors import NotFoundError
from .models import DashboardStats, InvoiceStatus

MIN_QUERY_LENGTH = 2
SEARCH_LIMIT = 10


def search_companies(session: Session, q: str) -> List[Company]:
    q = (q or "").strip()
    if len(q) < MIN_QUERY_LENGTH:
        return []
    return list(
        session.scalars(
            select(Company)
            .where(func.lower(Company.name).contains(q.lower()))
            .order_by(Company.name)
            .limit(SEARCH_LIMIT)
        )
    )


def get_company(session: Session, company_id: str) -> Company:
    company = session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return company


def list_companies(session: Session) -> List[Company]:
    return list(session.scalars(select(Company).order_by(Company.name)))


def dashboard_stats(session: Session, company_id: str) -> DashboardStats:
    invoices = session.scalar(select(func.count(Invoice.id)).where(Invoice.company_id == company_id))
    pending = session.scalar(
        select(func.count(Invoice.id)).where(
            Invoice.company_id == company_id, Invoice.status == InvoiceStatus.PENDING
        )
    )
    clients = session.scalar(select(func.count(Client.id)).where(Client.company_id == company_id))

    # total_amount is derived, so sum it in Python
    billed = session.scalars(
        select(Invoice).where(
            Invoice.company_id == company_id,
            Invoice.status.in_([InvoiceStatus.GENERATED, InvoiceStatus.SENT]),
        )
    )
    revenue = sum((invoice.total_amount for invoice in billed), Decimal("0"))
    return DashboardStats(invoices=invoices or 0, pending=pending or 0, clients=clients or 0, revenue=revenue)
