"""SQLModel tables for invoices and payments recorded against them."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, UniqueConstraint
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Statuses a client can see in the portal.
CLIENT_VISIBLE_STATUSES = (
    InvoiceStatus.SENT.value,
    InvoiceStatus.PAID.value,
    InvoiceStatus.PARTIAL.value,
    InvoiceStatus.OVERDUE.value,
)


class Invoice(TenantModel, table=True):
    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint("organization_id", "invoice_number"),)

    invoice_number: str = Field(index=True)
    client_id: str = Field(foreign_key="leads.id", index=True, ondelete="CASCADE")
    service_id: Optional[str] = Field(default=None, foreign_key="client_services.id", ondelete="SET NULL")
    status: str = Field(default=InvoiceStatus.DRAFT.value, index=True)
    line_items: list[dict[str, Any]] = Field(default_factory=list, sa_type=JSON)
    subtotal: float = 0.0
    tax_rate: float = 0.0
    tax_amount: float = 0.0
    discount_amount: float = 0.0
    total: float = 0.0
    amount_paid: float = 0.0
    balance_due: float = 0.0
    issue_date: Optional[date] = None
    due_date: Optional[date] = Field(default=None, index=True)
    notes: Optional[str] = None
    client_notes: Optional[str] = None
    terms: Optional[str] = None
    payment_method: Optional[str] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class InvoicePayment(TenantModel, table=True):
    __tablename__ = "invoice_payments"

    invoice_id: str = Field(foreign_key="invoices.id", index=True, ondelete="CASCADE")
    amount: float
    payment_method: str
    payment_reference: Optional[str] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = None
