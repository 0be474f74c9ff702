"""SQLModel table for services (packages) purchased by clients."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field

from doula_crm.core.models import TenantModel


class ServiceType(str, Enum):
    BIRTH_DOULA = "birth_doula"
    POSTPARTUM_DOULA = "postpartum_doula"
    LACTATION = "lactation"
    CHILDBIRTH_EDUCATION = "childbirth_education"
    CONSULTATION = "consultation"
    OTHER = "other"


class ServiceStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


class ClientService(TenantModel, table=True):
    __tablename__ = "client_services"

    client_id: str = Field(foreign_key="leads.id", index=True, ondelete="CASCADE")
    service_type: str = Field(default=ServiceType.BIRTH_DOULA.value)
    package_name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str = Field(default=ServiceStatus.PENDING.value, index=True)
    total_amount: Optional[float] = None
    payment_status: str = Field(default=PaymentStatus.UNPAID.value)
    contract_required: bool = True
    contract_signed: bool = False
    contract_signed_at: Optional[datetime] = None
    contract_signature_id: Optional[str] = None
    notes: Optional[str] = None
