# ticket_invoice/cli.py
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .db import SessionLocal, create_all, get_engine
from .entities import Invoice
from .errors import InvoicingError
from .extractor import parse_ticket_text, read_ticket
from .logging_utils import configure_logging
from .models import TicketData
from .pdf import render_invoice_pdf
from .validator import validate_ticket


def _print_ticket(ticket: TicketData) -> None:
    print(json.dumps(ticket.model_dump(mode="json", exclude={"raw_text"}), indent=2, ensure_ascii=False))


def cmd_init_db(args: argparse.Namespace) -> int:
    engine = get_engine()
    create_all(engine)
    print(f"Database ready at {engine.url.render_as_string(hide_password=True)}")
    return 0


def cmd_parse_text(args: argparse.Namespace) -> int:
    text = Path(args.input).read_text(encoding="utf-8")
    ticket = parse_ticket_text(text)
    _print_ticket(ticket)
    try:
        validate_ticket(ticket)
    except InvoicingError as exc:
        print(f"Ticket not usable: {', '.join(exc.context.get('errors', [exc.message]))}", file=sys.stderr)
        return 1
    return 0


def cmd_read_ticket(args: argparse.Namespace) -> int:
    path = Path(args.image)
    ticket = read_ticket(path.read_bytes(), path.name)
    _print_ticket(ticket)
    return 0 if ticket.amount is not None and ticket.date is not None else 1


def cmd_render_pdf(args: argparse.Namespace) -> int:
    get_engine()
    with SessionLocal() as session:
        invoice = session.get(Invoice, args.invoice_id)
        if invoice is None:
            print(f"Invoice {args.invoice_id} not found", file=sys.stderr)
            return 1
        pdf = render_invoice_pdf(invoice)

    Path(args.output).write_bytes(pdf)
    print(f"Wrote invoice {invoice.number or invoice.id} to {args.output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ticket-invoice")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init-db", help="Create the database tables")
    p_init.set_defaults(func=cmd_init_db)

    p_parse = sub.add_parser("parse-text", help="Parse OCR text from a file")
    p_parse.add_argument("--input", required=True, help="Text file with the OCR output")
    p_parse.set_defaults(func=cmd_parse_text)

    p_read = sub.add_parser("read-ticket", help="OCR and parse a ticket image or PDF")
    p_read.add_argument("--image", required=True, help="Ticket image (JPEG/PNG) or PDF")
    p_read.set_defaults(func=cmd_read_ticket)

    p_pdf = sub.add_parser("render-pdf", help="Render a stored invoice to PDF")
    p_pdf.add_argument("--invoice-id", required=True, help="Invoice id")
    p_pdf.add_argument("--output", required=True, help="Output PDF file")
    p_pdf.set_defaults(func=cmd_render_pdf)

    return parser


def main() -> None:
    configure_logging()
    args = build_parser().parse_args()
    try:
        exit_code = args.func(args)
    except InvoicingError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
