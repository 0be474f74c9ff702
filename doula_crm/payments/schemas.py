"""Pydantic schemas for the payments API."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from .models import PaymentMethod, PaymentRecordStatus, PaymentType


class PaymentCreate(BaseModel):
    model_config = {"use_enum_values": True}

    client_id: str
    service_id: Optional[str] = None
    amount: float = Field(gt=0)
    payment_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    payment_type: PaymentType = PaymentType.INSTALLMENT
    status: PaymentRecordStatus = PaymentRecordStatus.PENDING
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class PaymentUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    amount: Optional[float] = Field(default=None, gt=0)
    payment_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    payment_type: Optional[PaymentType] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class PaymentStatusChange(BaseModel):
    model_config = {"use_enum_values": True}

    status: PaymentRecordStatus


class PaymentRead(BaseModel):
    id: str
    client_id: str
    service_id: Optional[str]
    amount: float
    payment_date: Optional[date]
    payment_method: Optional[str]
    payment_type: str
    status: str
    transaction_id: Optional[str]
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentSummary(BaseModel):
    total: float
    paid: float
    pending: float
    outstanding: float
