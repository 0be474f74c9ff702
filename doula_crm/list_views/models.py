"""SQLModel table for saved list views."""

from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class ObjectType(str, Enum):
    LEADS = "leads"
    CLIENTS = "clients"
    INVOICES = "invoices"
    MEETINGS = "meetings"
    TEAM_MEMBERS = "team_members"
    PAYMENTS = "payments"
    SERVICES = "services"


class ViewVisibility(str, Enum):
    PRIVATE = "private"
    SHARED = "shared"
    ORG = "org"


class ListView(TenantModel, table=True):
    __tablename__ = "list_views"

    object_type: str = Field(index=True)
    name: str
    description: Optional[str] = None
    filters: list[dict[str, Any]] = Field(default_factory=list, sa_type=JSON)
    columns: list[dict[str, Any]] = Field(default_factory=list, sa_type=JSON)
    sort_config: Optional[dict[str, Any]] = Field(default=None, sa_type=JSON)
    visibility: str = ViewVisibility.PRIVATE.value
    is_default: bool = False
    is_pinned: bool = False
    created_by: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
