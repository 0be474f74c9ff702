"""SQLModel tables for leads, clients and their activity history.

A client is a lead whose status is ``client``; both live in the ``leads`` table.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class LeadSource(str, Enum):
    CONTACT_FORM = "contact_form"
    NEWSLETTER = "newsletter"
    MANUAL = "manual"


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    SCHEDULED = "scheduled"
    CLIENT = "client"
    LOST = "lost"


class LifecycleStage(str, Enum):
    LEAD = "lead"
    CONSULTATION_SCHEDULED = "consultation_scheduled"
    ACTIVE_CLIENT = "active_client"
    PAST_CLIENT = "past_client"
    INACTIVE = "inactive"


class ActivityType(str, Enum):
    NOTE = "note"
    EMAIL_SENT = "email_sent"
    CALL = "call"
    MEETING = "meeting"
    STATUS_CHANGE = "status_change"
    SYSTEM = "system"


class Lead(TenantModel, table=True):
    __tablename__ = "leads"

    name: str = Field(index=True)
    email: str = Field(index=True)
    phone: Optional[str] = None
    source: str = Field(default=LeadSource.MANUAL.value, index=True)
    status: str = Field(default=LeadStatus.NEW.value, index=True)
    lifecycle_stage: str = Field(default=LifecycleStage.LEAD.value)
    client_type: Optional[str] = None
    expected_due_date: Optional[date] = None
    service_interest: Optional[str] = None
    message: Optional[str] = None
    email_domain: Optional[str] = None
    assigned_to_user_id: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    referral_partner_id: Optional[str] = Field(
        default=None, foreign_key="referral_partners.id", index=True, ondelete="SET NULL"
    )
    partner_name: Optional[str] = None
    custom_fields: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    converted_at: Optional[datetime] = None


class LeadActivity(TenantModel, table=True):
    __tablename__ = "lead_activities"

    lead_id: str = Field(foreign_key="leads.id", index=True, ondelete="CASCADE")
    created_by_user_id: Optional[str] = Field(default=None, foreign_key="users.id")
    activity_type: str = Field(default=ActivityType.NOTE.value)
    content: str
    activity_metadata: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)


class ActionItem(TenantModel, table=True):
    """A task on a client's record (created by staff or by workflows)."""

    __tablename__ = "client_action_items"

    client_id: str = Field(foreign_key="leads.id", index=True, ondelete="CASCADE")
    title: str
    description: Optional[str] = None
    action_type: str = "custom"
    status: str = Field(default="pending", index=True)
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    created_by_workflow_id: Optional[str] = None
