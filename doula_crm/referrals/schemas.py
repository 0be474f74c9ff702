"""Pydantic schemas for the referral partner API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .models import PartnerType


class ReferralPartnerCreate(BaseModel):
    model_config = {"use_enum_values": True}

    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    business_name: Optional[str] = None
    partner_type: PartnerType = PartnerType.OTHER
    commission_percent: Optional[float] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None


class ReferralPartnerUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    business_name: Optional[str] = None
    partner_type: Optional[PartnerType] = None
    commission_percent: Optional[float] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None


class ReferralPartnerRead(BaseModel):
    id: str
    name: str
    email: Optional[str]
    phone: Optional[str]
    business_name: Optional[str]
    partner_type: str
    referral_code: str
    commission_percent: Optional[float]
    notes: Optional[str]
    is_active: bool
    created_at: datetime
    referral_url: Optional[str] = None
    lead_count: int = 0
    converted_count: int = 0

    model_config = {"from_attributes": True}


class PartnerSummary(BaseModel):
    id: str
    name: str
    lead_count: int
    converted_count: int
    is_active: bool


class ReferralStats(BaseModel):
    total_partners: int
    active_partners: int
    total_leads: int
    total_conversions: int
    top_partners: list[PartnerSummary]
    average_conversion_rate: float
