"""SQLModel tables describing CRM objects and their fields.

Standard objects map onto the domain tables (``table_name``); custom objects
keep their rows in ``crm_records``. Custom fields of standard objects live in
the row's ``custom_fields`` JSON column.
"""

from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Text, UniqueConstraint
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class SharingModel(str, Enum):
    """Organization-wide default access to records a user does not own."""

    PRIVATE = "private"
    READ = "read"
    READ_WRITE = "read_write"
    FULL_ACCESS = "full_access"


class FieldDataType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    CURRENCY = "currency"
    PERCENT = "percent"
    DATE = "date"
    DATETIME = "datetime"
    CHECKBOX = "checkbox"
    PICKLIST = "picklist"
    MULTIPICKLIST = "multipicklist"
    LOOKUP = "lookup"
    MASTER_DETAIL = "master_detail"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    FORMULA = "formula"
    AUTO_NUMBER = "auto_number"


class ObjectDefinition(TenantModel, table=True):
    __tablename__ = "object_definitions"
    __table_args__ = (UniqueConstraint("organization_id", "api_name"),)

    api_name: str = Field(index=True)
    label: str
    plural_label: str
    description: Optional[str] = None
    is_standard: bool = False
    is_custom: bool = True
    table_name: Optional[str] = None
    sharing_model: str = SharingModel.PRIVATE.value
    icon_name: Optional[str] = None
    color: Optional[str] = None
    has_activities: bool = False
    has_notes: bool = False
    is_active: bool = Field(default=True, index=True)


class FieldDefinition(TenantModel, table=True):
    __tablename__ = "field_definitions"
    __table_args__ = (UniqueConstraint("object_definition_id", "api_name"),)

    object_definition_id: str = Field(foreign_key="object_definitions.id", index=True, ondelete="CASCADE")
    api_name: str
    label: str
    description: Optional[str] = None
    help_text: Optional[str] = None
    data_type: str = FieldDataType.TEXT.value
    type_config: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    column_name: Optional[str] = None
    is_custom_field: bool = False
    is_required: bool = False
    is_unique: bool = False
    default_value: Optional[str] = None
    is_visible: bool = True
    is_read_only: bool = False
    display_order: int = 0
    is_standard: bool = False
    is_name_field: bool = False
    is_sensitive: bool = False
    is_active: bool = True


class PicklistValue(TenantModel, table=True):
    __tablename__ = "picklist_values"

    field_definition_id: str = Field(foreign_key="field_definitions.id", index=True, ondelete="CASCADE")
    value: str
    label: str
    display_order: int = 0
    is_default: bool = False
    is_active: bool = True
    color: Optional[str] = None
    controlling_values: list[str] = Field(default_factory=list, sa_type=JSON)


class PageLayout(TenantModel, table=True):
    __tablename__ = "page_layouts"

    object_definition_id: str = Field(foreign_key="object_definitions.id", index=True, ondelete="CASCADE")
    name: str
    description: Optional[str] = Field(default=None, sa_type=Text)
    layout_config: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    is_default: bool = False
    is_active: bool = True


class RecordType(TenantModel, table=True):
    __tablename__ = "record_types"
    __table_args__ = (UniqueConstraint("object_definition_id", "api_name"),)

    object_definition_id: str = Field(foreign_key="object_definitions.id", index=True, ondelete="CASCADE")
    api_name: str
    label: str
    description: Optional[str] = None
    is_default: bool = False
    is_active: bool = True


class FieldPermission(TenantModel, table=True):
    """Per-role override of field visibility. No row means visible and editable."""

    __tablename__ = "field_permissions"
    __table_args__ = (UniqueConstraint("role", "field_definition_id"),)

    role: str = Field(index=True)
    field_definition_id: str = Field(foreign_key="field_definitions.id", index=True, ondelete="CASCADE")
    is_visible: bool = True
    is_editable: bool = True
