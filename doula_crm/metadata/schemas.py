"""Pydantic schemas for the metadata API."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from doula_crm.organizations.models import Role

from .models import FieldDataType, SharingModel

# =============================================================================
# Objects
# =============================================================================


class CustomFieldInput(BaseModel):
    model_config = {"use_enum_values": True}

    api_name: str = Field(min_length=1)
    label: str = Field(min_length=1)
    data_type: FieldDataType = FieldDataType.TEXT
    description: Optional[str] = None
    help_text: Optional[str] = None
    type_config: dict[str, Any] = Field(default_factory=dict)
    is_required: bool = False
    is_unique: bool = False
    default_value: Optional[str] = None
    is_sensitive: bool = False
    picklist_values: list[str] = Field(default_factory=list)


class CustomObjectCreate(BaseModel):
    model_config = {"use_enum_values": True}

    api_name: str = Field(min_length=1)
    label: str = Field(min_length=1)
    plural_label: str = Field(min_length=1)
    description: Optional[str] = None
    sharing_model: SharingModel = SharingModel.PRIVATE
    icon_name: Optional[str] = "box"
    color: Optional[str] = None
    has_activities: bool = False
    has_notes: bool = False
    fields: list[CustomFieldInput] = Field(default_factory=list)


class ObjectUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    label: Optional[str] = Field(default=None, min_length=1)
    plural_label: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    sharing_model: Optional[SharingModel] = None
    icon_name: Optional[str] = None
    color: Optional[str] = None
    has_activities: Optional[bool] = None
    has_notes: Optional[bool] = None


class ObjectRead(BaseModel):
    id: str
    api_name: str
    label: str
    plural_label: str
    description: Optional[str]
    is_standard: bool
    is_custom: bool
    table_name: Optional[str]
    sharing_model: str
    icon_name: Optional[str]
    color: Optional[str]
    has_activities: bool
    has_notes: bool
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Fields and picklists
# =============================================================================


class FieldCreate(CustomFieldInput):
    display_order: Optional[int] = None


class FieldUpdate(BaseModel):
    label: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    help_text: Optional[str] = None
    type_config: Optional[dict[str, Any]] = None
    is_required: Optional[bool] = None
    is_unique: Optional[bool] = None
    default_value: Optional[str] = None
    is_visible: Optional[bool] = None
    is_read_only: Optional[bool] = None
    is_sensitive: Optional[bool] = None


class PicklistValueRead(BaseModel):
    id: str
    field_definition_id: str
    value: str
    label: str
    display_order: int
    is_default: bool
    is_active: bool
    color: Optional[str]
    controlling_values: list[str]

    model_config = {"from_attributes": True}


class FieldRead(BaseModel):
    id: str
    object_definition_id: str
    api_name: str
    label: str
    description: Optional[str]
    help_text: Optional[str]
    data_type: str
    type_config: dict[str, Any]
    column_name: Optional[str]
    is_custom_field: bool
    is_required: bool
    is_unique: bool
    default_value: Optional[str]
    is_visible: bool
    is_read_only: bool
    display_order: int
    is_standard: bool
    is_name_field: bool
    is_sensitive: bool
    is_active: bool

    model_config = {"from_attributes": True}


class FieldWithPicklist(FieldRead):
    picklist_values: list[PicklistValueRead] = Field(default_factory=list)


class FieldOrder(BaseModel):
    field_ids: list[str] = Field(min_length=1)


class PicklistValueCreate(BaseModel):
    value: str = Field(min_length=1)
    label: Optional[str] = None
    display_order: Optional[int] = None
    is_default: bool = False
    color: Optional[str] = None
    controlling_values: list[str] = Field(default_factory=list)


class PicklistValueUpdate(BaseModel):
    label: Optional[str] = None
    display_order: Optional[int] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None
    color: Optional[str] = None
    controlling_values: Optional[list[str]] = None


class PicklistOrder(BaseModel):
    value_ids: list[str] = Field(min_length=1)


# =============================================================================
# Layouts and record types
# =============================================================================


class LayoutCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    layout_config: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False


class LayoutUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    layout_config: Optional[dict[str, Any]] = None
    is_active: Optional[bool] = None


class LayoutRead(BaseModel):
    id: str
    object_definition_id: str
    name: str
    description: Optional[str]
    layout_config: dict[str, Any]
    is_default: bool
    is_active: bool

    model_config = {"from_attributes": True}


class RecordTypeCreate(BaseModel):
    api_name: str = Field(min_length=1, pattern="^[a-zA-Z][a-zA-Z0-9_]*$")
    label: str = Field(min_length=1)
    description: Optional[str] = None
    is_default: bool = False


class RecordTypeUpdate(BaseModel):
    label: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class RecordTypeRead(BaseModel):
    id: str
    object_definition_id: str
    api_name: str
    label: str
    description: Optional[str]
    is_default: bool
    is_active: bool

    model_config = {"from_attributes": True}


class ObjectMetadata(BaseModel):
    """Everything a client needs to render forms for one object."""

    object: ObjectRead
    fields: list[FieldWithPicklist]
    page_layout: Optional[LayoutRead] = None
    record_types: list[RecordTypeRead] = Field(default_factory=list)


class CustomObjectResult(BaseModel):
    object: ObjectRead
    fields: list[FieldRead]
    page_layout: Optional[LayoutRead] = None


# =============================================================================
# Field permissions
# =============================================================================


class FieldPermissionSet(BaseModel):
    model_config = {"use_enum_values": True}

    role: Role
    field_definition_id: str
    is_visible: bool = True
    is_editable: bool = True


class FieldPermissionItem(BaseModel):
    field_definition_id: str
    is_visible: bool = True
    is_editable: bool = True


class FieldPermissionBulk(BaseModel):
    model_config = {"use_enum_values": True}

    role: Role
    permissions: list[FieldPermissionItem]


class FieldPermissionCopy(BaseModel):
    model_config = {"use_enum_values": True}

    from_role: Role
    to_role: Role


class FieldPermissionRead(BaseModel):
    id: str
    role: str
    field_definition_id: str
    is_visible: bool
    is_editable: bool

    model_config = {"from_attributes": True}


class MatrixField(BaseModel):
    field_id: str
    api_name: str
    label: str
    is_visible: bool
    is_editable: bool
    is_standard: bool
    is_sensitive: bool


class PermissionMatrix(BaseModel):
    object_api_name: str
    role: str
    fields: list[MatrixField]


class AccessibleField(FieldRead):
    can_edit: bool = True


class SecurityContext(BaseModel):
    user_id: str
    role: str
    hierarchy_level: int
    is_admin: bool
