# ticket_invoice/models.py
from __future__ import annotations

import enum
import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InvoiceStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    GENERATED = "GENERATED"
    REJECTED = "REJECTED"
    SENT = "SENT"


class UserType(str, enum.Enum):
    CLIENT = "CLIENT"
    COMPANY = "COMPANY"


class DeliveryOutcome(str, enum.Enum):
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


# ---------------------------------------------------------
# OCR / TICKETS
# ---------------------------------------------------------
class LineItem(BaseModel):
    description: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")
    total_price: Optional[Decimal] = None


class TicketData(BaseModel):
    amount: Optional[Decimal] = None
    date: Optional[dt.date] = None
    company_name: Optional[str] = None
    nif: Optional[str] = None
    items: List[LineItem] = []
    raw_text: str = ""


class ClientData(BaseModel):
    nif: str
    name: str
    email: str
    address: str = ""
    postal_code: str = ""
    phone: Optional[str] = None


class ClientUpdate(BaseModel):
    nif: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    phone: Optional[str] = None


# ---------------------------------------------------------
# REQUEST BODIES
# ---------------------------------------------------------
class DirectInvoiceCreate(BaseModel):
    client_id: str
    items: List[LineItem] = []
    base_amount: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None
    description: Optional[str] = None
    issue_date: Optional[dt.date] = None


class ApproveRequest(BaseModel):
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class CompanyIn(BaseModel):
    name: str
    nif: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class RegisterRequest(BaseModel):
    email: str
    password: str
    name: str
    nif: str
    address: str
    postal_code: str
    phone: Optional[str] = None
    user_type: UserType = UserType.COMPANY
    company: Optional[CompanyIn] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


# ---------------------------------------------------------
# RESPONSES
# ---------------------------------------------------------
class CompanyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    nif: str
    address: str = ""
    postal_code: str = ""
    email: str = ""
    phone: str = ""


class ClientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    nif: str
    name: str
    email: str
    address: str = ""
    postal_code: str = ""
    phone: Optional[str] = None
    created_at: Optional[dt.datetime] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    nif: str
    user_type: UserType
    company: Optional[CompanyOut] = None


class InvoiceItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    description: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal


class DeliveryAttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attempted_at: dt.datetime
    recipient: str
    outcome: DeliveryOutcome
    detail: str = ""


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    number: Optional[str] = None
    status: InvoiceStatus
    company_id: str
    client_id: str
    requester_id: Optional[str] = None
    approver_id: Optional[str] = None
    issue_date: dt.date

    base_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    ticket_date: Optional[dt.date] = None
    ticket_amount: Optional[Decimal] = None
    ticket_hash: Optional[str] = None

    description: Optional[str] = None
    rejection_reason: Optional[str] = None
    approved_at: Optional[dt.datetime] = None
    generated_at: Optional[dt.datetime] = None
    sent_at: Optional[dt.datetime] = None

    client: Optional[ClientOut] = None
    company: Optional[CompanyOut] = None
    items: List[InvoiceItemOut] = []
    deliveries: List[DeliveryAttemptOut] = []


class ClientDetailOut(ClientOut):
    invoices: List[InvoiceOut] = Field(default_factory=list)


class DashboardStats(BaseModel):
    invoices: int
    pending: int
    clients: int
    revenue: Decimal
