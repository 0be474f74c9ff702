"""Pydantic schemas for the sharing API."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from doula_crm.metadata.models import SharingModel

from .models import AccessLevel, RuleType, ShareWithType


class SharingRuleCreate(BaseModel):
    model_config = {"use_enum_values": True}

    object_api_name: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    rule_type: RuleType = RuleType.CRITERIA_BASED
    criteria: dict[str, Any] = Field(default_factory=lambda: {"conditions": [], "match_type": "all"})
    owner_role: Optional[str] = None
    share_with_type: ShareWithType = ShareWithType.ROLE
    share_with_id: str = Field(min_length=1)
    access_level: AccessLevel = AccessLevel.READ
    is_active: bool = True


class SharingRuleUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    criteria: Optional[dict[str, Any]] = None
    owner_role: Optional[str] = None
    share_with_type: Optional[ShareWithType] = None
    share_with_id: Optional[str] = None
    access_level: Optional[AccessLevel] = None
    is_active: Optional[bool] = None


class SharingRuleRead(BaseModel):
    id: str
    object_api_name: str
    name: str
    description: Optional[str]
    rule_type: str
    criteria: dict[str, Any]
    owner_role: Optional[str]
    share_with_type: str
    share_with_id: str
    access_level: str
    is_active: bool
    created_by: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class CriteriaValidation(BaseModel):
    valid: bool
    error: Optional[str] = None


class ManualShareCreate(BaseModel):
    model_config = {"use_enum_values": True}

    object_api_name: str = Field(min_length=1)
    record_id: str = Field(min_length=1)
    share_with_type: ShareWithType = ShareWithType.USER
    share_with_id: str = Field(min_length=1)
    access_level: AccessLevel = AccessLevel.READ
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None


class ManualShareUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    access_level: Optional[AccessLevel] = None
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None


class ManualShareRead(BaseModel):
    id: str
    object_api_name: str
    record_id: str
    share_with_type: str
    share_with_id: str
    access_level: str
    reason: Optional[str]
    expires_at: Optional[datetime]
    shared_by: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class AccessGrantRead(BaseModel):
    source: str
    level: str
    source_id: Optional[str] = None
    source_name: Optional[str] = None


class AccessCheck(BaseModel):
    has_access: bool
    access_level: Optional[str]
    access_source: Optional[str]
    grants: list[AccessGrantRead] = Field(default_factory=list)


class RecordShareInfo(BaseModel):
    """Who can see a record beyond the organization default, and how."""

    share_with_type: str
    share_with_id: str
    display_name: str
    access_level: str
    source: str
    source_id: Optional[str] = None


class SharingModelUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    sharing_model: SharingModel


class ObjectSharingSettings(BaseModel):
    object_api_name: str
    label: str
    sharing_model: str
    sharing_rules: list[SharingRuleRead]


class ShareTargetUser(BaseModel):
    id: str
    full_name: Optional[str]
    email: str


class ShareTargets(BaseModel):
    users: list[ShareTargetUser]
    roles: list[str]


class RecordSecurity(BaseModel):
    user_id: str
    is_owner: bool
    access_level: Optional[str]
    access_source: Optional[str]
    can_edit: bool
    can_delete: bool
    can_manage_sharing: bool
    visible_field_ids: list[str] = Field(default_factory=list)
    editable_field_ids: list[str] = Field(default_factory=list)
