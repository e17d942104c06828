from datetime import datetime
from decimal import Decimal

import pytest

from ticket_invoice import clients, lifecycle
from ticket_invoice.errors import ConflictError, NotFoundError, ValidationError
from ticket_invoice.models import ClientData, ClientUpdate, DirectInvoiceCreate


def test_upsert_creates_then_overwrites(session, company_user, client_user, client_data):
    first = clients.upsert_client(session, company_user.company_id, client_data, user_id=client_user.id)
    assert first.nif == "12345678Z"
    assert first.user_id == client_user.id

    moved = client_data.model_copy(update={"nif": "12345678z", "address": "Calle Luna 9", "email": "ana@new.es"})
    second = clients.upsert_client(session, company_user.company_id, moved, user_id=client_user.id)

    assert second.id == first.id
    assert second.address == "Calle Luna 9"
    assert second.email == "ana@new.es"
    assert len(clients.list_clients(session, company_user.company_id)) == 1


def test_same_nif_is_a_separate_client_per_company(session, company_user, other_company_user, client_data):
    a = clients.upsert_client(session, company_user.company_id, client_data)
    b = clients.upsert_client(session, other_company_user.company_id, client_data)
    assert a.id != b.id


def test_upsert_requires_identity_fields(session, company_user):
    with pytest.raises(ValidationError) as exc_info:
        clients.upsert_client(session, company_user.company_id, ClientData(nif="", name="Ana", email="not-an-email"))
    assert exc_info.value.context["errors"] == ["missing_field: nif", "format: email_invalid"]


def test_search_normalizes_nif(session, company_user, client_data):
    created = clients.upsert_client(session, company_user.company_id, client_data)
    assert clients.search_client(session, company_user.company_id, " 12345678 z").id == created.id
    with pytest.raises(NotFoundError):
        clients.search_client(session, company_user.company_id, "00000000T")


def test_create_client_rejects_duplicate_nif(session, company_user, client_data):
    clients.create_client(session, company_user.company_id, client_data)
    with pytest.raises(ConflictError):
        clients.create_client(session, company_user.company_id, client_data)


def test_create_client_requires_address(session, company_user, client_data):
    with pytest.raises(ValidationError):
        clients.create_client(session, company_user.company_id, client_data.model_copy(update={"address": ""}))


def test_update_client(session, company_user, client_data):
    client = clients.create_client(session, company_user.company_id, client_data)
    other = clients.create_client(
        session, company_user.company_id, client_data.model_copy(update={"nif": "87654321X"})
    )

    updated = clients.update_client(
        session, company_user.company_id, client.id, ClientUpdate(name="Ana Garcia", email="", phone="600000000")
    )
    assert updated.name == "Ana Garcia"
    assert updated.email == "ana@example.com"
    assert updated.phone == "600000000"

    with pytest.raises(ConflictError):
        clients.update_client(session, company_user.company_id, client.id, ClientUpdate(nif=other.nif))


def test_foreign_client_is_not_found(session, company_user, other_company_user, client_data):
    client = clients.create_client(session, company_user.company_id, client_data)
    with pytest.raises(NotFoundError):
        clients.get_client(session, other_company_user.company_id, client.id)


def test_client_with_invoices_cannot_be_deleted(session, company_user, client_data):
    client = clients.create_client(session, company_user.company_id, client_data)
    lifecycle.create_invoice(
        session,
        company_user.company_id,
        company_user.id,
        DirectInvoiceCreate(client_id=client.id, base_amount=Decimal("10")),
        now=datetime(2024, 5, 1),
    )
    with pytest.raises(ConflictError):
        clients.delete_client(session, company_user.company_id, client.id)


def test_delete_client(session, company_user, client_data):
    client = clients.create_client(session, company_user.company_id, client_data)
    clients.delete_client(session, company_user.company_id, client.id)
    assert clients.list_clients(session, company_user.company_id) == []
