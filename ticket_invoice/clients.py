# ticket_invoice/clients.py
"""Client records, keyed by (company, NIF)."""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .entities import Client, Invoice
from .errors import ConflictError, NotFoundError, ValidationError
from .models import ClientData, ClientUpdate
from .validator import normalize_nif, validate_client

logger = logging.getLogger(__name__)

_MUTABLE_FIELDS = ("name", "email", "address", "postal_code", "phone")


def find_by_nif(session: Session, company_id: str, nif: str) -> Optional[Client]:
    return session.scalars(
        select(Client).where(Client.company_id == company_id, Client.nif == normalize_nif(nif))
    ).first()


def upsert_client(
    session: Session,
    company_id: str,
    data: ClientData,
    user_id: Optional[str] = None,
) -> Client:
    """Create the client on first sighting of its NIF, overwrite it afterwards."""
    data = validate_client(data)
    client = find_by_nif(session, company_id, data.nif)

    if client is None:
        client = Client(company_id=company_id, nif=data.nif, user_id=user_id)
        session.add(client)
        logger.info("New client %s for company %s", data.nif, company_id)

    for field in _MUTABLE_FIELDS:
        setattr(client, field, getattr(data, field))
    if data.phone is not None and not data.phone.strip():
        client.phone = None
    if user_id is not None:
        client.user_id = user_id

    session.flush()
    return client


def list_clients(session: Session, company_id: str) -> List[Client]:
    return list(
        session.scalars(
            select(Client).where(Client.company_id == company_id).order_by(Client.created_at.desc())
        )
    )


def get_client(session: Session, company_id: str, client_id: str) -> Client:
    client = session.scalars(
        select(Client).where(Client.id == client_id, Client.company_id == company_id)
    ).first()
    if client is None:
        raise NotFoundError("Client not found")
    return client


def search_client(session: Session, company_id: str, nif: str) -> Client:
    client = find_by_nif(session, company_id, nif)
    if client is None:
        raise NotFoundError("Client not found")
    return client


def create_client(session: Session, company_id: str, data: ClientData) -> Client:
    data = validate_client(data, require_address=True)
    if find_by_nif(session, company_id, data.nif) is not None:
        raise ConflictError("Client with this NIF already exists", nif=data.nif)

    client = Client(company_id=company_id, nif=data.nif)
    for field in _MUTABLE_FIELDS:
        setattr(client, field, getattr(data, field))
    session.add(client)
    session.flush()
    return client


def update_client(session: Session, company_id: str, client_id: str, changes: ClientUpdate) -> Client:
    client = get_client(session, company_id, client_id)
    updates = changes.model_dump(exclude_unset=True)

    if "nif" in updates:
        nif = normalize_nif(updates.pop("nif"))
        if not nif:
            raise ValidationError("NIF cannot be empty")
        other = find_by_nif(session, company_id, nif)
        if other is not None and other.id != client.id:
            raise ConflictError("Client with this NIF already exists", nif=nif)
        client.nif = nif

    for field, value in updates.items():
        if field != "phone" and not value:
            continue
        setattr(client, field, value)

    session.flush()
    return client


def delete_client(session: Session, company_id: str, client_id: str) -> None:
    client = get_client(session, company_id, client_id)
    invoices = session.scalar(select(func.count(Invoice.id)).where(Invoice.client_id == client.id))
    if invoices:
        raise ConflictError("Client has invoices and cannot be deleted", invoices=invoices)
    session.delete(client)
    session.flush()
