"""SQLModel table for client payments."""

from datetime import date
from enum import Enum
from typing import Optional

from sqlmodel import Field

from doula_crm.core.models import TenantModel


class PaymentRecordStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CHECK = "check"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class PaymentType(str, Enum):
    DEPOSIT = "deposit"
    INSTALLMENT = "installment"
    FINAL = "final"
    FULL = "full"
    REFUND = "refund"


class Payment(TenantModel, table=True):
    __tablename__ = "payments"

    client_id: str = Field(foreign_key="leads.id", index=True, ondelete="CASCADE")
    service_id: Optional[str] = Field(default=None, foreign_key="client_services.id", index=True, ondelete="SET NULL")
    amount: float
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    payment_type: str = Field(default=PaymentType.INSTALLMENT.value)
    status: str = Field(default=PaymentRecordStatus.PENDING.value, index=True)
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
