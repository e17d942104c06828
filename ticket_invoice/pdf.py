# ticket_invoice/pdf.py
"""Invoice PDF rendering with reportlab."""
from __future__ import annotations

import io
from datetime import date
from typing import List

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from .entities import Invoice
from .tax import format_money, money

PRIMARY = colors.Color(102 / 255, 126 / 255, 234 / 255)
DARK_GRAY = colors.Color(51 / 255, 51 / 255, 51 / 255)
LIGHT_GRAY = colors.Color(240 / 255, 240 / 255, 240 / 255)
FOOTER_GRAY = colors.Color(128 / 255, 128 / 255, 128 / 255)

PAGE_WIDTH, PAGE_HEIGHT = A4
DEFAULT_CONCEPT = "Servicios prestados"
FOOTER_NOTE = "Gracias por su confianza"


def _y(top_mm: float) -> float:
    """Distance from the top edge in mm to reportlab's bottom-up points."""
    return PAGE_HEIGHT - top_mm * mm


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def _text(c: canvas.Canvas, x_mm: float, top_mm: float, value, font="Helvetica", size=9) -> None:
    c.setFont(font, size)
    c.drawString(x_mm * mm, _y(top_mm), str(value or ""))


def _party_block(c: canvas.Canvas, x_mm: float, title: str, lines: List[str], width_mm: float) -> None:
    top = 50
    _text(c, x_mm, top, title, font="Helvetica-Bold")
    top += 6
    for line in lines:
        for chunk in simpleSplit(line or "", "Helvetica", 9, width_mm * mm) or [""]:
            _text(c, x_mm, top, chunk)
            top += 5


def _header(c: canvas.Canvas, invoice: Invoice) -> None:
    c.setFillColor(PRIMARY)
    c.rect(0, _y(40), PAGE_WIDTH, 40 * mm, stroke=0, fill=1)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 24)
    c.drawCentredString(PAGE_WIDTH / 2, _y(20), "FACTURA")
    c.setFont("Helvetica", 10)
    c.drawCentredString(PAGE_WIDTH / 2, _y(30), invoice.company.name)


def _body(c: canvas.Canvas, invoice: Invoice, top: float) -> float:
    c.setFillColor(LIGHT_GRAY)
    c.rect(20 * mm, _y(top + 10), 170 * mm, 10 * mm, stroke=0, fill=1)
    c.setFillColor(DARK_GRAY)
    _text(c, 25, top + 7, "CONCEPTO", font="Helvetica-Bold")
    if invoice.items:
        _text(c, 115, top + 7, "CANT.", font="Helvetica-Bold")
        _text(c, 135, top + 7, "PRECIO", font="Helvetica-Bold")
    _text(c, 160, top + 7, "IMPORTE", font="Helvetica-Bold")
    top += 15

    if invoice.items:
        for item in invoice.items:
            lines = simpleSplit(item.description, "Helvetica", 9, 85 * mm) or [""]
            for i, line in enumerate(lines):
                _text(c, 25, top + i * 5, line)
            _text(c, 115, top, f"{item.quantity.normalize():f}")
            _text(c, 135, top, format_money(item.unit_price))
            _text(c, 160, top, format_money(item.total_price))
            top += len(lines) * 5 + 2
        if invoice.description:
            top += 3
            for line in simpleSplit(invoice.description, "Helvetica-Oblique", 8, 160 * mm):
                _text(c, 25, top, line, font="Helvetica-Oblique", size=8)
                top += 4
    else:
        lines = simpleSplit(invoice.description or DEFAULT_CONCEPT, "Helvetica", 9, 120 * mm)
        for i, line in enumerate(lines):
            _text(c, 25, top + i * 5, line)
        _text(c, 160, top, format_money(invoice.base_amount))
        top += len(lines) * 5

    return top + 10


def _summary(c: canvas.Canvas, invoice: Invoice, top: float) -> None:
    c.setStrokeColor(PRIMARY)
    c.setLineWidth(0.5)
    c.line(20 * mm, _y(top), 190 * mm, _y(top))
    top += 10
    _text(c, 120, top, "Base Imponible:")
    _text(c, 170, top, format_money(invoice.base_amount))
    top += 7
    _text(c, 120, top, f"IVA ({money(invoice.tax_rate).normalize():f}%):")
    _text(c, 170, top, format_money(invoice.tax_amount))
    top += 7
    _text(c, 120, top, "TOTAL:", font="Helvetica-Bold", size=12)
    _text(c, 170, top, format_money(invoice.total_amount), font="Helvetica-Bold", size=12)


def render_invoice_pdf(invoice: Invoice) -> bytes:
    """Render the invoice: header band, parties, number/date, body, totals, footer."""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(f"Factura {invoice.number or ''}".strip())
    c.setAuthor(invoice.company.name)

    _header(c, invoice)

    c.setFillColor(DARK_GRAY)
    company, client = invoice.company, invoice.client
    _party_block(
        c, 20, "DATOS DEL EMISOR:",
        [company.name, f"NIF: {company.nif}", company.address, company.email, company.phone],
        width_mm=90,
    )
    _party_block(
        c, 120, "DATOS DEL CLIENTE:",
        [client.name, f"NIF: {client.nif}", client.address, client.postal_code, client.email],
        width_mm=70,
    )

    top = 100
    _text(c, 20, top, f"Nº Factura: {invoice.number or '-'}", font="Helvetica-Bold")
    _text(c, 120, top, f"Fecha: {format_date(invoice.issue_date)}", font="Helvetica-Bold")
    top += 5
    c.setStrokeColor(PRIMARY)
    c.setLineWidth(0.5)
    c.line(20 * mm, _y(top), 190 * mm, _y(top))

    top = _body(c, invoice, top + 10)
    _summary(c, invoice, top)

    c.setFillColor(FOOTER_GRAY)
    c.setFont("Helvetica", 8)
    c.drawCentredString(PAGE_WIDTH / 2, _y(280), FOOTER_NOTE)

    c.showPage()
    c.save()
    return buffer.getvalue()
