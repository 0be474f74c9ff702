"""Pydantic schemas for the webhooks API."""

from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from .dispatch import WEBHOOK_EVENTS


def _check_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Webhook URL must be an http or https URL")
    return value


def _check_events(value: list[str]) -> list[str]:
    unknown = [event for event in value if event not in WEBHOOK_EVENTS]
    if unknown:
        raise ValueError(f"Unknown webhook events: {', '.join(unknown)}")
    return list(dict.fromkeys(value))


class WebhookCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    url: str
    events: list[str] = Field(min_length=1)
    retry_count: int = Field(default=3, ge=0, le=10)
    timeout_seconds: int = Field(default=30, ge=1, le=120)
    custom_headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _check_url(value)

    @field_validator("events")
    @classmethod
    def validate_events(cls, value: list[str]) -> list[str]:
        return _check_events(value)


class WebhookUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    url: Optional[str] = None
    events: Optional[list[str]] = None
    is_active: Optional[bool] = None
    retry_count: Optional[int] = Field(default=None, ge=0, le=10)
    timeout_seconds: Optional[int] = Field(default=None, ge=1, le=120)
    custom_headers: Optional[dict[str, str]] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value) if value is not None else value

    @field_validator("events")
    @classmethod
    def validate_events(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return _check_events(value) if value is not None else value


class WebhookRead(BaseModel):
    id: str
    name: str
    description: Optional[str]
    url: str
    secret: str
    events: list[str]
    is_active: bool
    retry_count: int
    timeout_seconds: int
    custom_headers: dict[str, str]
    total_deliveries: int
    successful_deliveries: int
    failed_deliveries: int
    last_triggered_at: Optional[datetime]
    last_success_at: Optional[datetime]
    last_failure_at: Optional[datetime]
    last_failure_reason: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class DeliveryRead(BaseModel):
    id: str
    webhook_id: str
    event_type: str
    event_id: Optional[str]
    request_url: str
    request_headers: dict[str, Any]
    request_body: dict[str, Any]
    response_status: Optional[int]
    response_body: Optional[str]
    status: str
    attempt_count: int
    duration_ms: Optional[int]
    error_message: Optional[str]
    completed_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class EventInfo(BaseModel):
    event: str
    description: str
