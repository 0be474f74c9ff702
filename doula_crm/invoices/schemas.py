"""Pydantic schemas for the invoices API."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class LineItem(BaseModel):
    description: str
    quantity: float = Field(default=1, gt=0)
    unit_price: float = Field(ge=0)
    total: Optional[float] = None


class InvoiceCreate(BaseModel):
    client_id: str
    service_id: Optional[str] = None
    line_items: list[LineItem] = Field(default_factory=list)
    due_date: Optional[date] = None
    notes: Optional[str] = None
    client_notes: Optional[str] = None
    terms: Optional[str] = None
    tax_rate: float = Field(default=0, ge=0, le=1)
    discount_amount: float = Field(default=0, ge=0)


class InvoiceUpdate(BaseModel):
    line_items: Optional[list[LineItem]] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    client_notes: Optional[str] = None
    terms: Optional[str] = None
    tax_rate: Optional[float] = Field(default=None, ge=0, le=1)
    discount_amount: Optional[float] = Field(default=None, ge=0)


class InvoiceRead(BaseModel):
    id: str
    invoice_number: str
    client_id: str
    service_id: Optional[str]
    status: str
    line_items: list[dict[str, Any]]
    subtotal: float
    tax_rate: float
    tax_amount: float
    discount_amount: float
    total: float
    amount_paid: float
    balance_due: float
    issue_date: Optional[date]
    due_date: Optional[date]
    notes: Optional[str]
    client_notes: Optional[str]
    terms: Optional[str]
    payment_method: Optional[str]
    sent_at: Optional[datetime]
    paid_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoicePaymentCreate(BaseModel):
    amount: float = Field(gt=0)
    payment_method: str = Field(min_length=1)
    payment_reference: Optional[str] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class InvoicePaymentRead(BaseModel):
    id: str
    invoice_id: str
    amount: float
    payment_method: str
    payment_reference: Optional[str]
    payment_date: Optional[date]
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoiceStats(BaseModel):
    total_invoiced: float
    total_paid: float
    total_outstanding: float
    invoice_count: int
    paid_count: int
    pending_count: int
    overdue_count: int
