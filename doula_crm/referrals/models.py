"""SQLModel table for referral partners."""

from enum import Enum
from typing import Optional

from sqlmodel import Field

from doula_crm.core.models import TenantModel


class PartnerType(str, Enum):
    PROVIDER = "provider"
    DOULA = "doula"
    MIDWIFE = "midwife"
    FORMER_CLIENT = "former_client"
    OTHER = "other"


class ReferralPartner(TenantModel, table=True):
    __tablename__ = "referral_partners"

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    business_name: Optional[str] = None
    partner_type: str = Field(default=PartnerType.OTHER.value)
    referral_code: str = Field(unique=True, index=True)
    commission_percent: Optional[float] = None
    notes: Optional[str] = None
    is_active: bool = True
