"""SQLModel table for client meetings and appointments."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field

from doula_crm.core.models import TenantModel


class MeetingType(str, Enum):
    CONSULTATION = "consultation"
    PRENATAL = "prenatal"
    BIRTH = "birth"
    POSTPARTUM = "postpartum"
    FOLLOW_UP = "follow_up"


class MeetingStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class Meeting(TenantModel, table=True):
    __tablename__ = "meetings"

    client_id: str = Field(foreign_key="leads.id", index=True, ondelete="CASCADE")
    title: str
    meeting_type: str = Field(default=MeetingType.CONSULTATION.value)
    scheduled_at: datetime = Field(index=True)
    duration_minutes: int = 60
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    status: str = Field(default=MeetingStatus.SCHEDULED.value, index=True)
    notes: Optional[str] = None
    client_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
