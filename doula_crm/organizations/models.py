"""SQLModel tables for organizations and their users."""

from datetime import datetime
from enum import Enum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from doula_crm.core.models import TenantModel, new_id, utcnow


class Role(str, Enum):
    """Organization roles, most senior first."""
    OWNER = "owner"
    ADMIN = "admin"
    PROVIDER = "provider"
    ASSISTANT = "assistant"
    STAFF = "staff"


# Lower level is more senior.
ROLE_HIERARCHY: dict[str, int] = {
    Role.OWNER.value: 0,
    Role.ADMIN.value: 1,
    Role.PROVIDER.value: 2,
    Role.ASSISTANT.value: 3,
    Role.STAFF.value: 4,
}

ADMIN_ROLES = frozenset({Role.OWNER.value, Role.ADMIN.value})


def hierarchy_level(role: str) -> int:
    return ROLE_HIERARCHY.get(role, max(ROLE_HIERARCHY.values()))


class Organization(SQLModel, table=True):
    __tablename__ = "organizations"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)


class User(TenantModel, table=True):
    """A member of an organization. Identity is asserted by the auth provider."""

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("organization_id", "email"),)

    email: str = Field(index=True)
    full_name: str | None = None
    role: str = Field(default=Role.STAFF.value)
    is_active: bool = True
