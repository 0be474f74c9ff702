"""Pydantic schemas for the client services API."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from .models import PaymentStatus, ServiceStatus, ServiceType


class ServiceCreate(BaseModel):
    model_config = {"use_enum_values": True}

    client_id: str
    service_type: ServiceType = ServiceType.BIRTH_DOULA
    package_name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: ServiceStatus = ServiceStatus.PENDING
    total_amount: Optional[float] = Field(default=None, ge=0)
    contract_required: bool = True
    notes: Optional[str] = None


class ServiceUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    service_type: Optional[ServiceType] = None
    package_name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_amount: Optional[float] = Field(default=None, ge=0)
    contract_required: Optional[bool] = None
    notes: Optional[str] = None


class ServiceStatusUpdate(BaseModel):
    status: ServiceStatus


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class ServiceRead(BaseModel):
    id: str
    client_id: str
    service_type: str
    package_name: Optional[str]
    description: Optional[str]
    start_date: Optional[date]
    end_date: Optional[date]
    status: str
    total_amount: Optional[float]
    payment_status: str
    contract_required: bool
    contract_signed: bool
    contract_signed_at: Optional[datetime]
    contract_signature_id: Optional[str]
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}
