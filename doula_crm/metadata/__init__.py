"""Schema-as-data: object and field definitions, layouts and field security."""

from .models import (
    FieldDataType,
    FieldDefinition,
    FieldPermission,
    ObjectDefinition,
    PageLayout,
    PicklistValue,
    RecordType,
    SharingModel,
)

__all__ = [
    "FieldDataType",
    "FieldDefinition",
    "FieldPermission",
    "ObjectDefinition",
    "PageLayout",
    "PicklistValue",
    "RecordType",
    "SharingModel",
]
