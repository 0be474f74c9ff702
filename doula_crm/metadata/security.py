"""Field-level security.

Permissions are per role and per field. A field with no permission row is
visible and editable; read-only fields are never editable. Record data is keyed
by column name (standard fields) or by api name inside ``custom_fields``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .models import FieldDefinition, FieldPermission

SYSTEM_FIELDS = frozenset({"id", "organization_id", "created_at", "updated_at", "owner_id"})

SENSITIVE_FIELD_API_NAMES = frozenset(
    {
        "medical_info",
        "birth_preferences",
        "emergency_contact",
        "ssn",
        "insurance_info",
        "payment_info",
    }
)


@dataclass(frozen=True)
class FieldAccess:
    field_id: str
    api_name: str
    key: str
    is_custom: bool
    can_read: bool
    can_edit: bool


def field_key(field: FieldDefinition) -> str:
    """Key of the field in record data."""
    return field.column_name or field.api_name


def resolve_field_access(
    fields: Iterable[FieldDefinition], permissions: Iterable[FieldPermission]
) -> dict[str, FieldAccess]:
    """Build the access map for one role, keyed by field id."""
    by_field = {p.field_definition_id: p for p in permissions}
    access = {}
    for field in fields:
        permission = by_field.get(field.id)
        can_read = permission.is_visible if permission else True
        can_edit = can_read and (permission.is_editable if permission else True) and not field.is_read_only
        access[field.id] = FieldAccess(
            field_id=field.id,
            api_name=field.api_name,
            key=field_key(field),
            is_custom=field.is_custom_field,
            can_read=can_read,
            can_edit=can_edit,
        )
    return access


def filter_fields_by_permissions(
    fields: Iterable[FieldDefinition], permissions: Iterable[FieldPermission]
) -> list[FieldDefinition]:
    fields = list(fields)
    access = resolve_field_access(fields, permissions)
    return [f for f in fields if access[f.id].can_read]


def _lookup(access: dict[str, FieldAccess]) -> tuple[dict[str, FieldAccess], dict[str, FieldAccess]]:
    standard, custom = {}, {}
    for item in access.values():
        if item.is_custom:
            custom[item.api_name] = item
        else:
            standard[item.key] = item
            standard.setdefault(item.api_name, item)
    return standard, custom


def filter_record_data(record: dict[str, Any], access: dict[str, FieldAccess]) -> dict[str, Any]:
    """Keep system fields and fields the role can read."""
    standard, custom = _lookup(access)
    filtered = {}
    for key, value in record.items():
        if key == "custom_fields":
            continue
        if key in SYSTEM_FIELDS or (key in standard and standard[key].can_read):
            filtered[key] = value

    if isinstance(record.get("custom_fields"), dict):
        filtered["custom_fields"] = {
            key: value
            for key, value in record["custom_fields"].items()
            if key in custom and custom[key].can_read
        }
    return filtered


def validate_field_edit_permissions(attempted: Iterable[str], access: dict[str, FieldAccess]) -> list[str]:
    """Return the attempted keys that map to fields the role may not edit.

    Keys that match no field definition are not reported here.
    """
    standard, custom = _lookup(access)
    denied = []
    for key in attempted:
        item = standard.get(key) or custom.get(key)
        if item is not None and not item.can_edit:
            denied.append(key)
    return denied


def unreadable_fields(names: Iterable[str], access: dict[str, FieldAccess]) -> list[str]:
    """Return the names that map to fields the role may not read."""
    standard, custom = _lookup(access)
    hidden = []
    for name in names:
        item = standard.get(name) or custom.get(name)
        if item is not None and not item.can_read:
            hidden.append(name)
    return hidden


def is_sensitive_field(field: FieldDefinition) -> bool:
    api_name = field.api_name.removesuffix("__c").lower()
    return field.is_sensitive or api_name in SENSITIVE_FIELD_API_NAMES


def build_permission_matrix(
    object_api_name: str,
    role: str,
    fields: Iterable[FieldDefinition],
    permissions: Iterable[FieldPermission],
) -> dict[str, Any]:
    by_field = {p.field_definition_id: p for p in permissions}
    rows = []
    for field in fields:
        permission: Optional[FieldPermission] = by_field.get(field.id)
        rows.append(
            {
                "field_id": field.id,
                "api_name": field.api_name,
                "label": field.label,
                "is_visible": permission.is_visible if permission else True,
                "is_editable": permission.is_editable if permission else True,
                "is_standard": field.is_standard,
                "is_sensitive": is_sensitive_field(field),
            }
        )
    return {"object_api_name": object_api_name, "role": role, "fields": rows}
