"""SQLModel table for custom object records."""

from typing import Any, Optional

from sqlalchemy import JSON
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class CrmRecord(TenantModel, table=True):
    """One record of a custom object. Field values live in ``data`` keyed by api name."""

    __tablename__ = "crm_records"

    object_definition_id: str = Field(foreign_key="object_definitions.id", index=True, ondelete="CASCADE")
    name: str = Field(index=True)
    owner_id: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    data: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
