"""CLI entrypoint tests."""
import json
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pdfplumber

from conftest import TICKET_TEXT
from ticket_invoice import lifecycle
from ticket_invoice.clients import upsert_client
from ticket_invoice.models import DirectInvoiceCreate


def test_parse_text_prints_ticket(tmp_path: Path, run_cli, capsys):
    source = tmp_path / "ticket.txt"
    source.write_text(TICKET_TEXT, encoding="utf-8")

    assert run_cli(["parse-text", "--input", str(source)]) == 0

    printed = json.loads(capsys.readouterr().out)
    assert printed["amount"] == "24.20"
    assert printed["date"] == "2024-03-15"
    assert len(printed["items"]) == 2


def test_parse_text_without_amount_fails(tmp_path: Path, run_cli, capsys):
    source = tmp_path / "ticket.txt"
    source.write_text("Sin importe ni fecha", encoding="utf-8")

    assert run_cli(["parse-text", "--input", str(source)]) == 1
    assert "missing_field: amount" in capsys.readouterr().err


def test_read_ticket_uses_ocr(tmp_path: Path, run_cli, fake_ocr, capsys):
    image = tmp_path / "ticket.jpg"
    image.write_bytes(b"fake-jpeg")

    assert run_cli(["read-ticket", "--image", str(image)]) == 0
    assert json.loads(capsys.readouterr().out)["nif"] == "B12345678"


def test_init_db(engine, run_cli, capsys):
    assert run_cli(["init-db"]) == 0
    assert "Database ready" in capsys.readouterr().out


def test_render_pdf(tmp_path: Path, session, company_user, client_data, run_cli):
    client = upsert_client(session, company_user.company_id, client_data)
    invoice = lifecycle.create_invoice(
        session,
        company_user.company_id,
        company_user.id,
        DirectInvoiceCreate(client_id=client.id, base_amount=Decimal("20")),
        now=datetime(2024, 3, 15),
    )
    session.commit()
    output = tmp_path / "factura.pdf"

    assert run_cli(["render-pdf", "--invoice-id", invoice.id, "--output", str(output)]) == 0

    with pdfplumber.open(output) as pdf:
        assert "2024-001" in pdf.pages[0].extract_text()


def test_render_unknown_invoice(tmp_path: Path, engine, run_cli):
    assert run_cli(["render-pdf", "--invoice-id", "missing", "--output", str(tmp_path / "x.pdf")]) == 1
