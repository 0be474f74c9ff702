"""SQLModel tables for outbound webhooks and their delivery log."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Text
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    RETRYING = "retrying"


class Webhook(TenantModel, table=True):
    __tablename__ = "webhooks"

    name: str
    description: Optional[str] = None
    url: str
    secret: str
    events: list[str] = Field(default_factory=list, sa_type=JSON)
    is_active: bool = Field(default=True, index=True)
    retry_count: int = 3
    timeout_seconds: int = 30
    custom_headers: dict[str, str] = Field(default_factory=dict, sa_type=JSON)
    created_by: Optional[str] = Field(default=None, foreign_key="users.id")

    total_deliveries: int = 0
    successful_deliveries: int = 0
    failed_deliveries: int = 0
    last_triggered_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None
    last_failure_reason: Optional[str] = None


class WebhookDelivery(TenantModel, table=True):
    __tablename__ = "webhook_deliveries"

    webhook_id: str = Field(foreign_key="webhooks.id", index=True, ondelete="CASCADE")
    event_type: str = Field(index=True)
    event_id: Optional[str] = None
    request_url: str
    request_headers: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    request_body: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    response_status: Optional[int] = None
    response_body: Optional[str] = Field(default=None, sa_type=Text)
    status: str = Field(default=DeliveryStatus.PENDING.value, index=True)
    attempt_count: int = 0
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    completed_at: Optional[datetime] = None
