"""Shared fixtures: in-memory database, seeded accounts, fake OCR and mail."""
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool

# Ensure repository root is on sys.path for module resolution
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ticket_invoice import auth, db, extractor, lifecycle
from ticket_invoice.cli import main as cli_main
from ticket_invoice.models import ClientData, CompanyIn, LineItem, RegisterRequest, TicketData, UserType

TICKET_TEXT = """CAFE ACME SL
CIF B12345678
Calle Mayor 1, Madrid
Fecha: 15/03/2024 10:32
Menu del dia 2 x 10,00
Cafe 1 x 2,00
SUBTOTAL 20,00
IVA 21% 4,20
TOTAL 24,20 EUR
Gracias por su visita
"""


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Real PBKDF2 cost makes the suite crawl."""

    monkeypatch.setattr(auth, "PBKDF2_ITERATIONS", 1000)


@pytest.fixture(autouse=True)
def outbox(monkeypatch: pytest.MonkeyPatch) -> list:
    """Capture invoice emails instead of talking to SMTP."""

    sent = []

    def fake_send(invoice, pdf_bytes):
        sent.append({"to": invoice.client.email, "number": invoice.number, "pdf": pdf_bytes})
        return True, f"Email sent to {invoice.client.email}"

    monkeypatch.setattr(lifecycle, "send_invoice_email", fake_send)
    return sent


@pytest.fixture
def failing_mail(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(lifecycle, "send_invoice_email", lambda invoice, pdf: (False, "SMTP error: timeout"))


@pytest.fixture(autouse=True)
def reset_outbox(monkeypatch: pytest.MonkeyPatch) -> list:
    sent = []

    def fake_send(to_email, reset_url):
        sent.append({"to": to_email, "url": reset_url})
        return True, f"Email sent to {to_email}"

    monkeypatch.setattr(auth, "send_password_reset_email", fake_send)
    return sent


@pytest.fixture
def fake_ocr(monkeypatch: pytest.MonkeyPatch):
    """Make every upload read as ``TICKET_TEXT`` (or the text set on the returned holder)."""

    holder = {"text": TICKET_TEXT}
    monkeypatch.setattr(extractor, "extract_text", lambda content, filename="ticket.jpg": holder["text"])
    return holder


@pytest.fixture
def engine():
    engine = db.init_engine("sqlite://", poolclass=StaticPool)
    db.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with db.SessionLocal() as session:
        yield session


def _register(session, email, nif, user_type=UserType.COMPANY, company_name=None):
    req = RegisterRequest(
        email=email,
        password="secret123",
        name=company_name or "Ana Cliente",
        nif=nif,
        address="Calle Mayor 1",
        postal_code="28001",
        user_type=user_type,
        company=CompanyIn(name=company_name, nif=nif, email=email) if company_name else None,
    )
    user, _ = auth.register_user(session, req)
    session.commit()
    return user


@pytest.fixture
def company_user(session):
    return _register(session, "owner@acme.es", "B12345678", company_name="Cafe Acme SL")


@pytest.fixture
def other_company_user(session):
    return _register(session, "owner@otro.es", "B87654321", company_name="Bar Otro SL")


@pytest.fixture
def client_user(session):
    return _register(session, "ana@example.com", "12345678Z", user_type=UserType.CLIENT)


@pytest.fixture
def client_data() -> ClientData:
    return ClientData(
        nif="12345678-z",
        name="Ana Cliente",
        email="ana@example.com",
        address="Calle Sol 2",
        postal_code="28002",
    )


@pytest.fixture
def ticket() -> TicketData:
    return TicketData(
        amount=Decimal("24.20"),
        date=date(2024, 3, 15),
        company_name="CAFE ACME SL",
        items=[
            LineItem(description="Menu del dia", quantity=Decimal("2"), unit_price=Decimal("10.00")),
            LineItem(description="Cafe", quantity=Decimal("1"), unit_price=Decimal("2.00")),
        ],
        raw_text=TICKET_TEXT,
    )


@pytest.fixture
def api(engine):
    """HTTP client against the app, sharing the in-memory database."""

    from fastapi.testclient import TestClient

    import main

    return TestClient(main.app)


@pytest.fixture
def run_cli(monkeypatch: pytest.MonkeyPatch):
    """Helper to invoke the CLI with custom arguments; returns the exit code."""

    def _run(args: list[str]) -> int:
        monkeypatch.setattr(sys, "argv", ["ticket-invoice", *args])
        with pytest.raises(SystemExit) as exc_info:
            cli_main()
        return exc_info.value.code

    return _run
