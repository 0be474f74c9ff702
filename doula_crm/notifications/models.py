"""SQLModel tables for the notification log and client preferences."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, UniqueConstraint
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    IN_APP = "in_app"


class NotificationStatus(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class NotificationLog(TenantModel, table=True):
    """A notification the system produced. Delivery happens outside this service."""

    __tablename__ = "notification_log"

    client_id: Optional[str] = Field(default=None, foreign_key="leads.id", index=True, ondelete="CASCADE")
    notification_type: str = Field(index=True)
    channel: str = Field(default=NotificationChannel.EMAIL.value)
    recipient: str
    subject: Optional[str] = None
    status: str = Field(default=NotificationStatus.QUEUED.value)
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    notification_metadata: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)


class NotificationPreference(TenantModel, table=True):
    __tablename__ = "notification_preferences"
    __table_args__ = (UniqueConstraint("client_id"),)

    client_id: str = Field(foreign_key="leads.id", index=True, ondelete="CASCADE")
    email_enabled: bool = True
    sms_enabled: bool = False
    meeting_reminders: bool = True
    payment_reminders: bool = True
    document_notifications: bool = True
    marketing_emails: bool = False
    reminder_hours_before: int = 24
