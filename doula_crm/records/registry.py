"""Which table backs each object, and how its records behave in the generic API."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional

from doula_crm.core.errors import InvalidOperationError
from doula_crm.list_views.query import OBJECT_TARGETS, QueryTarget
from doula_crm.metadata.models import FieldDefinition, ObjectDefinition

from .models import CrmRecord


@dataclass(frozen=True)
class RecordObject:
    api_name: str
    object_type: str
    event_type: Optional[str] = None
    owner_column: Optional[str] = None
    read_only: bool = False
    created_event: Optional[str] = None
    updated_event: Optional[str] = None


STANDARD_OBJECTS: dict[str, RecordObject] = {
    "Lead": RecordObject(
        "Lead", "leads", "lead", "assigned_to_user_id", created_event="lead.created", updated_event="lead.updated"
    ),
    "Client": RecordObject(
        "Client",
        "clients",
        "lead",
        "assigned_to_user_id",
        created_event="client.created",
        updated_event="client.updated",
    ),
    "Service": RecordObject("Service", "services", "service"),
    "Meeting": RecordObject("Meeting", "meetings", "meeting"),
    "Invoice": RecordObject("Invoice", "invoices", "invoice", read_only=True),
    "Payment": RecordObject("Payment", "payments", "payment", read_only=True),
    "TeamMember": RecordObject("TeamMember", "team_members"),
}

CUSTOM_OWNER_COLUMN = "owner_id"


def api_name_for(object_type: str) -> str:
    """Object api name for a list view object type."""
    for entry in STANDARD_OBJECTS.values():
        if entry.object_type == object_type:
            return entry.api_name
    raise InvalidOperationError(f"Unknown object type: {object_type}")


def record_object(obj: ObjectDefinition) -> Optional[RecordObject]:
    """Registry entry of a standard object, None for custom objects."""
    if obj.is_custom:
        return None
    entry = STANDARD_OBJECTS.get(obj.api_name)
    if entry is None:
        raise InvalidOperationError(f"Object '{obj.api_name}' has no record storage")
    return entry


def query_target(obj: ObjectDefinition, fields: Iterable[FieldDefinition]) -> QueryTarget:
    """Query target for an object, with its custom fields filterable through JSON."""
    custom = {f.api_name: f.data_type for f in fields if f.is_custom_field}
    entry = record_object(obj)
    if entry is None:
        return QueryTarget(
            CrmRecord,
            base_filters=(CrmRecord.object_definition_id == obj.id,),
            json_column="data",
            json_fields=custom,
            search_fields=("name",),
        )
    target = OBJECT_TARGETS[entry.object_type]
    if not target.json_column:
        return target
    return replace(target, json_fields=custom)
