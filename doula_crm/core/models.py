"""Shared column definitions and helpers for SQLModel tables."""

import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (stored as UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def new_id() -> str:
    return str(uuid.uuid4())


class TenantModel(SQLModel):
    """Columns shared by every organization-scoped table."""

    id: str = Field(default_factory=new_id, primary_key=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)


def to_dict(instance: SQLModel) -> dict[str, Any]:
    """Serialize a table row to JSON-compatible primitives."""
    return instance.model_dump(mode="json")


def apply_changes(instance: SQLModel, changes: dict[str, Any]) -> SQLModel:
    """Set attributes from ``changes`` and bump ``updated_at`` when present."""
    for key, value in changes.items():
        setattr(instance, key, value)
    if hasattr(instance, "updated_at"):
        instance.updated_at = utcnow()
    return instance
