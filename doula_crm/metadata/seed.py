"""Standard object metadata seeded into new organizations."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml
from sqlmodel import Session

from doula_crm.core.config import get_settings

from .models import FieldDataType, FieldDefinition, ObjectDefinition, PageLayout, PicklistValue

logger = logging.getLogger(__name__)

TYPE_CONFIG_DEFAULTS: dict[str, dict[str, Any]] = {
    FieldDataType.TEXT.value: {"max_length": 255},
    FieldDataType.TEXTAREA.value: {"max_length": 32000},
    FieldDataType.NUMBER.value: {"precision": 18, "scale": 2},
    FieldDataType.CURRENCY.value: {"precision": 18, "scale": 2, "currency_code": "USD"},
    FieldDataType.PERCENT.value: {"precision": 5, "scale": 2},
    FieldDataType.PICKLIST.value: {"allow_blank": True},
    FieldDataType.MULTIPICKLIST.value: {"allow_blank": True},
}


def default_type_config(data_type: str, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    return {**TYPE_CONFIG_DEFAULTS.get(data_type, {}), **(overrides or {})}


def default_layout_config(field_names: Iterable[str], has_activities: bool = False) -> dict[str, Any]:
    return {
        "sections": [
            {"name": "Information", "columns": 2, "collapsed": False, "fields": list(field_names)},
        ],
        "related_lists": ["Activities"] if has_activities else [],
    }


@lru_cache
def load_standard_objects(path: Optional[str] = None) -> tuple[dict[str, Any], ...]:
    source = Path(path) if path else Path(get_settings().seed_metadata_dir) / "standard_objects.yaml"
    with open(source, encoding="utf-8") as f:
        content = yaml.safe_load(f) or {}
    return tuple(content.get("objects", []))


def add_picklist_values(
    session: Session, organization_id: str, field: FieldDefinition, values: Iterable[str | dict[str, Any]]
) -> list[PicklistValue]:
    created = []
    for order, raw in enumerate(values):
        item = raw if isinstance(raw, dict) else {"value": raw}
        value = PicklistValue(
            organization_id=organization_id,
            field_definition_id=field.id,
            value=str(item["value"]),
            label=item.get("label") or str(item["value"]).replace("_", " ").title(),
            display_order=order,
            is_default=item.get("is_default", order == 0),
            color=item.get("color"),
        )
        session.add(value)
        created.append(value)
    return created


def seed_standard_metadata(session: Session, organization_id: str) -> list[ObjectDefinition]:
    """Create the standard objects, fields, picklists and default layouts.

    Flushes but does not commit; the caller owns the transaction.
    """
    objects = []
    for raw in load_standard_objects():
        obj = ObjectDefinition(
            organization_id=organization_id,
            api_name=raw["api_name"],
            label=raw["label"],
            plural_label=raw["plural_label"],
            description=raw.get("description"),
            is_standard=True,
            is_custom=False,
            table_name=raw.get("table_name"),
            sharing_model=raw.get("sharing_model", "private"),
            icon_name=raw.get("icon_name"),
            color=raw.get("color"),
            has_activities=raw.get("has_activities", False),
            has_notes=raw.get("has_notes", False),
        )
        session.add(obj)
        session.flush()

        field_names = []
        for order, raw_field in enumerate(raw.get("fields", [])):
            data_type = raw_field.get("data_type", FieldDataType.TEXT.value)
            field = FieldDefinition(
                organization_id=organization_id,
                object_definition_id=obj.id,
                api_name=raw_field["api_name"],
                label=raw_field["label"],
                data_type=data_type,
                type_config=default_type_config(data_type, raw_field.get("type_config")),
                column_name=raw_field["api_name"],
                is_required=raw_field.get("is_required", False),
                is_read_only=raw_field.get("is_read_only", False),
                is_name_field=raw_field.get("is_name_field", False),
                is_sensitive=raw_field.get("is_sensitive", False),
                is_standard=True,
                display_order=order,
            )
            session.add(field)
            session.flush()
            add_picklist_values(session, organization_id, field, raw_field.get("picklist", []))
            field_names.append(field.api_name)

        session.add(
            PageLayout(
                organization_id=organization_id,
                object_definition_id=obj.id,
                name="Default Layout",
                description=f"Default page layout for {obj.label}",
                layout_config=default_layout_config(field_names, obj.has_activities),
                is_default=True,
            )
        )
        objects.append(obj)

    session.flush()
    logger.info(
        "Standard metadata seeded",
        extra={"organization_id": organization_id, "status": f"{len(objects)} objects"},
    )
    return objects
