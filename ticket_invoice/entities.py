# ticket_invoice/entities.py
"""ORM tables: users, companies, clients, invoices and their children."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base
from .models import DeliveryOutcome, InvoiceStatus, UserType
from .tax import Amounts, from_base, split_gross


class ExactDecimal(TypeDecorator):
    """Decimal kept as its plain string form.

    SQLite has no decimal storage and would round-trip ``Numeric`` through float.
    """

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return format(value, "f")

    def process_result_value(self, value, dialect):
        return None if value is None else Decimal(value)


MONEY = ExactDecimal()


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255))
    nif: Mapped[str] = mapped_column(String(32), unique=True)
    address: Mapped[str] = mapped_column(String(255), default="")
    postal_code: Mapped[str] = mapped_column(String(16), default="")
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    user_type: Mapped[UserType] = mapped_column(
        Enum(UserType, native_enum=False, length=16), default=UserType.COMPANY
    )
    api_token: Mapped[Optional[str]] = mapped_column(String(64), unique=True)
    reset_token: Mapped[Optional[str]] = mapped_column(String(64))
    reset_token_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    company: Mapped[Optional["Company"]] = relationship(back_populates="owner", uselist=False)

    @property
    def company_id(self) -> Optional[str]:
        return self.company.id if self.company else None


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), unique=True)
    name: Mapped[str] = mapped_column(String(255))
    nif: Mapped[str] = mapped_column(String(32))
    address: Mapped[str] = mapped_column(String(255), default="")
    postal_code: Mapped[str] = mapped_column(String(16), default="")
    email: Mapped[str] = mapped_column(String(255), default="")
    phone: Mapped[str] = mapped_column(String(32), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    owner: Mapped[Optional[User]] = relationship(back_populates="company")
    clients: Mapped[List["Client"]] = relationship(back_populates="company")
    invoices: Mapped[List["Invoice"]] = relationship(back_populates="company")


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (UniqueConstraint("company_id", "nif", name="uq_client_company_nif"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    user_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"))
    nif: Mapped[str] = mapped_column(String(32))
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255))
    address: Mapped[str] = mapped_column(String(255), default="")
    postal_code: Mapped[str] = mapped_column(String(16), default="")
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    company: Mapped[Company] = relationship(back_populates="clients")
    invoices: Mapped[List["Invoice"]] = relationship(
        back_populates="client", order_by="Invoice.issue_date.desc()"
    )


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("company_id", "number", name="uq_invoice_company_number"),
        UniqueConstraint("company_id", "ticket_hash", name="uq_invoice_company_ticket"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    number: Mapped[Optional[str]] = mapped_column(String(16))
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus, native_enum=False, length=16), default=InvoiceStatus.PENDING, index=True
    )

    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"))
    requester_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), index=True)
    approver_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"))

    issue_date: Mapped[date] = mapped_column(Date, default=date.today)
    base_amount: Mapped[Decimal] = mapped_column(MONEY)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("21"))

    ticket_date: Mapped[Optional[date]] = mapped_column(Date)
    ticket_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    ticket_hash: Mapped[Optional[str]] = mapped_column(String(64))
    ocr_data: Mapped[Optional[dict]] = mapped_column(JSON)

    description: Mapped[Optional[str]] = mapped_column(Text)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    company: Mapped[Company] = relationship(back_populates="invoices")
    client: Mapped[Client] = relationship(back_populates="invoices")
    requester: Mapped[Optional[User]] = relationship(foreign_keys=[requester_id])
    approver: Mapped[Optional[User]] = relationship(foreign_keys=[approver_id])
    items: Mapped[List["InvoiceItem"]] = relationship(
        back_populates="invoice", order_by="InvoiceItem.position", cascade="all, delete-orphan"
    )
    deliveries: Mapped[List["DeliveryAttempt"]] = relationship(
        back_populates="invoice", order_by="DeliveryAttempt.id", cascade="all, delete-orphan"
    )

    @property
    def amounts(self) -> Amounts:
        # Ticket invoices are anchored to the gross the customer paid
        if self.ticket_amount is not None:
            return split_gross(self.ticket_amount, self.tax_rate)
        return from_base(self.base_amount, self.tax_rate)

    @property
    def tax_amount(self) -> Decimal:
        return self.amounts.tax

    @property
    def total_amount(self) -> Decimal:
        return self.amounts.total

    @property
    def last_delivery(self) -> Optional["DeliveryAttempt"]:
        return self.deliveries[-1] if self.deliveries else None


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[str] = mapped_column(ForeignKey("invoices.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[str] = mapped_column(String(255))
    quantity: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))

    invoice: Mapped[Invoice] = relationship(back_populates="items")


class DeliveryAttempt(Base):
    __tablename__ = "delivery_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[str] = mapped_column(ForeignKey("invoices.id"), index=True)
    attempted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    recipient: Mapped[str] = mapped_column(String(255))
    outcome: Mapped[DeliveryOutcome] = mapped_column(Enum(DeliveryOutcome, native_enum=False, length=16))
    detail: Mapped[str] = mapped_column(Text, default="")

    invoice: Mapped[Invoice] = relationship(back_populates="deliveries")
