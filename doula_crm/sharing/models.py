"""SQLModel tables for sharing rules and manual record shares."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class AccessLevel(str, Enum):
    READ = "read"
    READ_WRITE = "read_write"
    FULL_ACCESS = "full_access"


class RuleType(str, Enum):
    OWNER_BASED = "owner_based"
    CRITERIA_BASED = "criteria_based"


class ShareWithType(str, Enum):
    USER = "user"
    ROLE = "role"
    PUBLIC_GROUP = "public_group"


class AccessSource(str, Enum):
    ADMIN = "admin"
    OWNER = "owner"
    ORG_WIDE_DEFAULT = "org_wide_default"
    ROLE_HIERARCHY = "role_hierarchy"
    SHARING_RULE = "sharing_rule"
    MANUAL_SHARE = "manual_share"


class SharingRule(TenantModel, table=True):
    """Grants a user or role access to records of one object.

    Owner-based rules share records owned by users of ``owner_role`` (every
    record when unset); criteria-based rules share records matching ``criteria``.
    """

    __tablename__ = "sharing_rules"

    object_api_name: str = Field(index=True)
    name: str
    description: Optional[str] = None
    rule_type: str = RuleType.CRITERIA_BASED.value
    criteria: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    owner_role: Optional[str] = None
    share_with_type: str = ShareWithType.ROLE.value
    share_with_id: str
    access_level: str = AccessLevel.READ.value
    is_active: bool = Field(default=True, index=True)
    created_by: Optional[str] = Field(default=None, foreign_key="users.id")


class ManualShare(TenantModel, table=True):
    __tablename__ = "manual_shares"

    object_api_name: str = Field(index=True)
    record_id: str = Field(index=True)
    share_with_type: str = ShareWithType.USER.value
    share_with_id: str
    access_level: str = AccessLevel.READ.value
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    shared_by: Optional[str] = Field(default=None, foreign_key="users.id")
