"""Pydantic schemas for the leads API."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field

from .models import ActivityType, LeadSource, LeadStatus, LifecycleStage


class LeadCreate(BaseModel):
    model_config = {"use_enum_values": True}

    name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    source: LeadSource = LeadSource.MANUAL
    status: LeadStatus = LeadStatus.NEW
    client_type: Optional[str] = None
    expected_due_date: Optional[date] = None
    service_interest: Optional[str] = None
    message: Optional[str] = None
    assigned_to_user_id: Optional[str] = None
    referral_partner_id: Optional[str] = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class LeadUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    source: Optional[LeadSource] = None
    lifecycle_stage: Optional[LifecycleStage] = None
    client_type: Optional[str] = None
    expected_due_date: Optional[date] = None
    service_interest: Optional[str] = None
    message: Optional[str] = None
    assigned_to_user_id: Optional[str] = None
    referral_partner_id: Optional[str] = None
    custom_fields: Optional[dict[str, Any]] = None


class LeadStatusUpdate(BaseModel):
    status: LeadStatus
    note: Optional[str] = None


class LeadRead(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str]
    source: str
    status: str
    lifecycle_stage: str
    client_type: Optional[str]
    expected_due_date: Optional[date]
    service_interest: Optional[str]
    message: Optional[str]
    email_domain: Optional[str]
    assigned_to_user_id: Optional[str]
    referral_partner_id: Optional[str]
    partner_name: Optional[str]
    custom_fields: dict[str, Any]
    converted_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ActivityCreate(BaseModel):
    activity_type: ActivityType = ActivityType.NOTE
    content: str = Field(min_length=1)
    activity_metadata: dict[str, Any] = Field(default_factory=dict)


class ActivityRead(BaseModel):
    id: str
    lead_id: str
    activity_type: str
    content: str
    activity_metadata: dict[str, Any]
    created_by_user_id: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class ActionItemCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    action_type: str = "custom"
    due_date: Optional[date] = None


class ActionItemRead(BaseModel):
    id: str
    client_id: str
    title: str
    description: Optional[str]
    action_type: str
    status: str
    due_date: Optional[date]
    completed_at: Optional[datetime]
    created_by_workflow_id: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class LeadStats(BaseModel):
    total: int
    by_status: dict[str, int]
    by_source: dict[str, int]
