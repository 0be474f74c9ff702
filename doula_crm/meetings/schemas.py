"""Pydantic schemas for the meetings API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .models import MeetingStatus, MeetingType


class MeetingCreate(BaseModel):
    model_config = {"use_enum_values": True}

    client_id: str
    title: str = Field(min_length=1)
    meeting_type: MeetingType = MeetingType.CONSULTATION
    scheduled_at: datetime
    duration_minutes: int = Field(default=60, gt=0, le=24 * 60)
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    client_notes: Optional[str] = None


class MeetingUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    title: Optional[str] = Field(default=None, min_length=1)
    meeting_type: Optional[MeetingType] = None
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0, le=24 * 60)
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    client_notes: Optional[str] = None


class MeetingStatusUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    status: MeetingStatus


class MeetingNotes(BaseModel):
    notes: Optional[str] = None


class MeetingRead(BaseModel):
    id: str
    client_id: str
    title: str
    meeting_type: str
    scheduled_at: datetime
    duration_minutes: int
    location: Optional[str]
    meeting_link: Optional[str]
    status: str
    notes: Optional[str]
    client_notes: Optional[str]
    completed_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}
