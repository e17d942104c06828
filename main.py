# main.py
from __future__ import annotations

import logging
import shutil
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ticket_invoice import auth, clients, companies, config, lifecycle
from ticket_invoice.db import create_all, get_session
from ticket_invoice.entities import User
from ticket_invoice.errors import ForbiddenError, InvoicingError, UpstreamError
from ticket_invoice.extractor import read_ticket
from ticket_invoice.logging_utils import configure_logging
from ticket_invoice.models import (
    ApproveRequest,
    ClientData,
    ClientDetailOut,
    ClientOut,
    ClientUpdate,
    CompanyOut,
    DashboardStats,
    DeliveryAttemptOut,
    DeliveryOutcome,
    DirectInvoiceCreate,
    ForgotPasswordRequest,
    InvoiceOut,
    InvoiceStatus,
    LoginRequest,
    RegisterRequest,
    RejectRequest,
    ResetPasswordRequest,
    TicketData,
    UserOut,
)
from ticket_invoice.pdf import render_invoice_pdf

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    create_all()
    yield


app = FastAPI(title="Ticket Invoice Service", lifespan=lifespan)


# ---------------------------------------------------------
# ERRORS
# ---------------------------------------------------------
@app.exception_handler(InvoicingError)
async def invoicing_error_handler(request: Request, exc: InvoicingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ---------------------------------------------------------
# AUTH DEPENDENCIES
# ---------------------------------------------------------
bearer = HTTPBearer(auto_error=False)


def current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    session: Session = Depends(get_session),
) -> User:
    return auth.user_for_token(session, credentials.credentials if credentials else None)


def company_user(user: User = Depends(current_user)) -> User:
    if not user.company_id:
        raise ForbiddenError("Only companies can access this route")
    return user


def _invoice_out(invoice) -> InvoiceOut:
    return InvoiceOut.model_validate(invoice)


# ---------------------------------------------------------
# HEALTH / OCR STATUS
# ---------------------------------------------------------
@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "ticket-invoice-api",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/ocr-status")
def ocr_status():
    """Whether the configured OCR provider looks usable from this process."""
    if config.OCR_PROVIDER == "tesseract":
        available = bool(config.TESSERACT_CMD or shutil.which("tesseract"))
    else:
        available = bool(config.OCR_API_KEY)
    return {"provider": config.OCR_PROVIDER, "ocr_available": available}


# ---------------------------------------------------------
# ACCOUNTS
# ---------------------------------------------------------
@app.post("/api/auth/register", status_code=201)
def register(req: RegisterRequest, session: Session = Depends(get_session)):
    user, token = auth.register_user(session, req)
    session.commit()
    return {"message": "User registered successfully", "token": token, "user": UserOut.model_validate(user)}


@app.post("/api/auth/login")
def login(req: LoginRequest, session: Session = Depends(get_session)):
    user, token = auth.login(session, req.email, req.password)
    session.commit()
    return {"token": token, "user": UserOut.model_validate(user)}


@app.get("/api/auth/me", response_model=UserOut)
def me(user: User = Depends(current_user)):
    return user


@app.post("/api/auth/forgot-password")
def forgot_password(req: ForgotPasswordRequest, session: Session = Depends(get_session)):
    auth.forgot_password(session, req.email)
    session.commit()
    return {"message": "If the email exists, a reset link has been sent"}


@app.post("/api/auth/reset-password")
def reset_password(req: ResetPasswordRequest, session: Session = Depends(get_session)):
    auth.reset_password(session, req.token, req.password)
    session.commit()
    return {"message": "Password updated successfully"}


# ---------------------------------------------------------
# INVOICES: CLIENT SIDE
# ---------------------------------------------------------
@app.post("/api/invoices/request", status_code=201)
def request_invoice(
    ticket_image: UploadFile = File(...),
    company_id: str = Form(...),
    nif: str = Form(...),
    name: str = Form(...),
    email: str = Form(...),
    address: str = Form(""),
    postal_code: str = Form(""),
    phone: Optional[str] = Form(None),
    user: User = Depends(current_user),
    session: Session = Depends(get_session),
):
    ticket = read_ticket(ticket_image.file.read(), ticket_image.filename or "ticket.jpg")
    client_data = ClientData(
        nif=nif, name=name, email=email, address=address, postal_code=postal_code, phone=phone
    )
    invoice = lifecycle.submit_ticket(session, company_id, client_data, ticket, requester_id=user.id)
    session.commit()
    return {"invoice": _invoice_out(invoice), "message": f"Request sent to {invoice.company.name}"}


@app.get("/api/invoices/my-requests", response_model=List[InvoiceOut])
def my_requests(user: User = Depends(current_user), session: Session = Depends(get_session)):
    return lifecycle.list_requests_for_user(session, user.id)


@app.post("/api/invoices/ocr", response_model=TicketData)
def ocr_passthrough(image: UploadFile = File(...), user: User = Depends(current_user)):
    return read_ticket(image.file.read(), image.filename or "ticket.jpg")


# ---------------------------------------------------------
# INVOICES: COMPANY SIDE
# ---------------------------------------------------------
@app.get("/api/invoices/pending", response_model=List[InvoiceOut])
def pending_invoices(user: User = Depends(company_user), session: Session = Depends(get_session)):
    return lifecycle.list_company_invoices(session, user.company_id, [InvoiceStatus.PENDING])


@app.get("/api/invoices/approved", response_model=List[InvoiceOut])
def approved_invoices(user: User = Depends(company_user), session: Session = Depends(get_session)):
    return lifecycle.list_company_invoices(session, user.company_id, lifecycle.APPROVED_STATUSES)


@app.post("/api/invoices", status_code=201)
def create_invoice(
    payload: DirectInvoiceCreate,
    user: User = Depends(company_user),
    session: Session = Depends(get_session),
):
    invoice = lifecycle.create_invoice(session, user.company_id, user.id, payload)
    session.commit()
    return {"invoice": _invoice_out(invoice), "message": f"Invoice {invoice.number} created"}


@app.post("/api/invoices/{invoice_id}/approve")
def approve_invoice(
    invoice_id: str,
    req: Optional[ApproveRequest] = None,
    user: User = Depends(company_user),
    session: Session = Depends(get_session),
):
    notes = req.notes if req else None
    invoice = lifecycle.approve_invoice(session, invoice_id, user.company_id, user.id, notes=notes)
    session.commit()

    delivery = invoice.last_delivery
    if delivery is not None and delivery.outcome == DeliveryOutcome.DELIVERED:
        message = "Invoice generated and sent to the client"
    else:
        message = "Invoice generated; email delivery failed, it can be resent"
    return {
        "invoice": _invoice_out(invoice),
        "delivery": DeliveryAttemptOut.model_validate(delivery) if delivery else None,
        "message": message,
    }


@app.post("/api/invoices/{invoice_id}/reject")
def reject_invoice(
    invoice_id: str,
    req: Optional[RejectRequest] = None,
    user: User = Depends(company_user),
    session: Session = Depends(get_session),
):
    invoice = lifecycle.reject_invoice(session, invoice_id, user.company_id, reason=req.reason if req else None)
    session.commit()
    return {"message": "Request rejected", "invoice": _invoice_out(invoice)}


@app.post("/api/invoices/{invoice_id}/send")
def send_invoice(
    invoice_id: str,
    user: User = Depends(company_user),
    session: Session = Depends(get_session),
):
    attempt = lifecycle.send_invoice(session, invoice_id, user.company_id)
    # The attempt is kept even when the email failed
    session.commit()
    delivery = DeliveryAttemptOut.model_validate(attempt)
    if attempt.outcome != DeliveryOutcome.DELIVERED:
        raise UpstreamError("Invoice email could not be sent", delivery=delivery.model_dump(mode="json"))
    return {"invoice": _invoice_out(attempt.invoice), "delivery": delivery, "message": "Invoice sent"}


# ---------------------------------------------------------
# INVOICES: BOTH
# ---------------------------------------------------------
@app.get("/api/invoices/{invoice_id}", response_model=InvoiceOut)
def get_invoice(invoice_id: str, user: User = Depends(current_user), session: Session = Depends(get_session)):
    return lifecycle.get_invoice_for_user(session, invoice_id, user)


@app.get("/api/invoices/{invoice_id}/pdf")
def invoice_pdf(invoice_id: str, user: User = Depends(current_user), session: Session = Depends(get_session)):
    invoice = lifecycle.get_invoice_for_user(session, invoice_id, user)
    filename = f"Factura_{invoice.number or 'borrador'}.pdf"
    return Response(
        content=render_invoice_pdf(invoice),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------
# CLIENTS
# ---------------------------------------------------------
@app.get("/api/clients", response_model=List[ClientOut])
def list_clients(user: User = Depends(company_user), session: Session = Depends(get_session)):
    return clients.list_clients(session, user.company_id)


@app.get("/api/clients/search/{nif}", response_model=ClientOut)
def search_client(nif: str, user: User = Depends(company_user), session: Session = Depends(get_session)):
    return clients.search_client(session, user.company_id, nif)


@app.get("/api/clients/{client_id}", response_model=ClientDetailOut)
def get_client(client_id: str, user: User = Depends(company_user), session: Session = Depends(get_session)):
    client = clients.get_client(session, user.company_id, client_id)
    return ClientDetailOut(
        **ClientOut.model_validate(client).model_dump(),
        invoices=[_invoice_out(invoice) for invoice in client.invoices[:10]],
    )


@app.post("/api/clients", response_model=ClientOut, status_code=201)
def create_client(data: ClientData, user: User = Depends(company_user), session: Session = Depends(get_session)):
    client = clients.create_client(session, user.company_id, data)
    session.commit()
    return client


@app.put("/api/clients/{client_id}", response_model=ClientOut)
def update_client(
    client_id: str,
    changes: ClientUpdate,
    user: User = Depends(company_user),
    session: Session = Depends(get_session),
):
    client = clients.update_client(session, user.company_id, client_id, changes)
    session.commit()
    return client


@app.delete("/api/clients/{client_id}")
def delete_client(client_id: str, user: User = Depends(company_user), session: Session = Depends(get_session)):
    clients.delete_client(session, user.company_id, client_id)
    session.commit()
    return {"message": "Client deleted successfully"}


# ---------------------------------------------------------
# COMPANIES / DASHBOARD
# ---------------------------------------------------------
@app.get("/api/companies", response_model=List[CompanyOut])
def list_companies(user: User = Depends(current_user), session: Session = Depends(get_session)):
    return companies.list_companies(session)


@app.get("/api/companies/search", response_model=List[CompanyOut])
def search_companies(q: str = "", user: User = Depends(current_user), session: Session = Depends(get_session)):
    return companies.search_companies(session, q)


@app.get("/api/companies/{company_id}", response_model=CompanyOut)
def get_company(company_id: str, user: User = Depends(current_user), session: Session = Depends(get_session)):
    return companies.get_company(session, company_id)


@app.get("/api/dashboard/stats", response_model=DashboardStats)
def dashboard_stats(user: User = Depends(company_user), session: Session = Depends(get_session)):
    return companies.dashboard_stats(session, user.company_id)
