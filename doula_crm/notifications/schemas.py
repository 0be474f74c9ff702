"""Pydantic schemas for notifications."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from .models import NotificationChannel, NotificationStatus


class NotificationLogCreate(BaseModel):
    model_config = {"use_enum_values": True}

    client_id: Optional[str] = None
    notification_type: str = Field(min_length=1)
    channel: NotificationChannel = NotificationChannel.EMAIL
    recipient: str = Field(min_length=1)
    subject: Optional[str] = None
    status: NotificationStatus = NotificationStatus.QUEUED
    error_message: Optional[str] = None
    notification_metadata: dict[str, Any] = Field(default_factory=dict)


class NotificationLogRead(BaseModel):
    id: str
    client_id: Optional[str]
    notification_type: str
    channel: str
    recipient: str
    subject: Optional[str]
    status: str
    sent_at: Optional[datetime]
    error_message: Optional[str]
    notification_metadata: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}


class PreferencesUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    sms_enabled: Optional[bool] = None
    meeting_reminders: Optional[bool] = None
    payment_reminders: Optional[bool] = None
    document_notifications: Optional[bool] = None
    marketing_emails: Optional[bool] = None
    reminder_hours_before: Optional[int] = Field(default=None, ge=1, le=168)


class PreferencesRead(BaseModel):
    client_id: str
    email_enabled: bool
    sms_enabled: bool
    meeting_reminders: bool
    payment_reminders: bool
    document_notifications: bool
    marketing_emails: bool
    reminder_hours_before: int

    model_config = {"from_attributes": True}
