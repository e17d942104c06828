# ticket_invoice/mailer.py
"""Email delivery over SMTP."""
from __future__ import annotations

import html
import logging
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import List, Optional, Tuple

from . import config

logger = logging.getLogger(__name__)


def is_email_configured() -> bool:
    return bool(config.SMTP_EMAIL and config.SMTP_PASSWORD)


def send_email(
    to_email: str,
    subject: str,
    html_body: str,
    sender_name: Optional[str] = None,
    cc: Optional[List[str]] = None,
    attachment: Optional[Tuple[str, bytes]] = None,
) -> tuple[bool, str]:
    """Send one message. Returns ``(success, message)``; never raises."""
    if not is_email_configured():
        return False, "SMTP not configured"
    if not to_email:
        return False, "No recipient"

    msg = MIMEMultipart()
    msg["From"] = formataddr((sender_name, config.SMTP_EMAIL)) if sender_name else config.SMTP_EMAIL
    msg["To"] = to_email
    if cc:
        msg["Cc"] = ", ".join(cc)
    msg["Subject"] = subject
    msg.attach(MIMEText(html_body, "html", "utf-8"))

    if attachment:
        filename, content = attachment
        part = MIMEApplication(content, _subtype="pdf")
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.SMTP_TIMEOUT) as server:
            server.starttls()
            server.login(config.SMTP_EMAIL, config.SMTP_PASSWORD)
            server.send_message(msg)
    except smtplib.SMTPAuthenticationError:
        logger.error("SMTP auth failed for %s", config.SMTP_EMAIL)
        return False, "SMTP auth failed"
    except smtplib.SMTPRecipientsRefused:
        return False, f"Invalid recipient: {to_email}"
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("SMTP error sending to %s: %s", to_email, exc)
        return False, f"SMTP error: {type(exc).__name__}"

    logger.info("Email sent to %s: %s", to_email, subject)
    return True, f"Email sent to {to_email}"


def send_invoice_email(invoice, pdf_bytes: bytes) -> tuple[bool, str]:
    company, client = invoice.company, invoice.client
    body = (
        f"<h2>Factura {html.escape(invoice.number or '')}</h2>"
        f"<p>Estimado/a {html.escape(client.name)},</p>"
        "<p>Adjuntamos su factura.</p>"
    )
    return send_email(
        client.email,
        f"Factura {invoice.number} - {company.name}",
        body,
        sender_name=company.name,
        cc=[config.SMTP_EMAIL],
        attachment=(f"Factura_{invoice.number}.pdf", pdf_bytes),
    )


def send_password_reset_email(to_email: str, reset_url: str) -> tuple[bool, str]:
    body = (
        "<h2>Restablecer contraseña</h2>"
        "<p>Hemos recibido una solicitud para restablecer su contraseña.</p>"
        f'<p><a href="{html.escape(reset_url, quote=True)}">Restablecer contraseña</a></p>'
        "<p>El enlace caduca en 1 hora. Si no ha solicitado el cambio, ignore este mensaje.</p>"
    )
    return send_email(to_email, "Restablecer contraseña", body)
