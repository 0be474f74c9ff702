"""Object, field, layout and field-permission administration."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from sqlmodel import Session, col, select

from doula_crm.core.context import RequestContext
from doula_crm.core.errors import ConflictError, InvalidOperationError, NotFoundError
from doula_crm.core.models import apply_changes
from doula_crm.navigation.service import register_custom_object

from .models import (
    FieldDataType,
    FieldDefinition,
    FieldPermission,
    ObjectDefinition,
    PageLayout,
    PicklistValue,
    RecordType,
)
from .schemas import (
    CustomFieldInput,
    CustomObjectCreate,
    FieldCreate,
    FieldPermissionBulk,
    FieldUpdate,
    LayoutCreate,
    LayoutUpdate,
    ObjectUpdate,
    PicklistValueCreate,
    PicklistValueUpdate,
    RecordTypeCreate,
    RecordTypeUpdate,
)
from .security import FieldAccess, build_permission_matrix, filter_fields_by_permissions, resolve_field_access
from .seed import add_picklist_values, default_layout_config, default_type_config

logger = logging.getLogger(__name__)

CUSTOM_API_NAME = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*__c$")

# Name field flags that cannot be changed once the object exists
NAME_FIELD_LOCKED = ("is_required", "is_read_only", "is_visible")


def custom_api_name(name: str) -> str:
    """Append the ``__c`` suffix and validate the result."""
    api_name = name if name.endswith("__c") else f"{name}__c"
    if not CUSTOM_API_NAME.match(api_name):
        raise InvalidOperationError(
            f"Invalid API name '{name}': must start with a letter and contain only letters, numbers and underscores"
        )
    return api_name


# =============================================================================
# Lookups shared with records, sharing and list views
# =============================================================================


def get_object_by_api_name(session: Session, organization_id: str, api_name: str) -> Optional[ObjectDefinition]:
    return session.exec(
        select(ObjectDefinition).where(
            ObjectDefinition.organization_id == organization_id,
            ObjectDefinition.api_name == api_name,
        )
    ).first()


def active_fields(session: Session, object_definition_id: str) -> list[FieldDefinition]:
    statement = (
        select(FieldDefinition)
        .where(
            FieldDefinition.object_definition_id == object_definition_id,
            FieldDefinition.is_active == True,  # noqa: E712
        )
        .order_by(col(FieldDefinition.display_order), col(FieldDefinition.created_at))
    )
    return list(session.exec(statement).all())


def role_permissions(
    session: Session, organization_id: str, role: str, field_ids: Optional[list[str]] = None
) -> list[FieldPermission]:
    statement = select(FieldPermission).where(
        FieldPermission.organization_id == organization_id, FieldPermission.role == role
    )
    if field_ids is not None:
        statement = statement.where(col(FieldPermission.field_definition_id).in_(field_ids))
    return list(session.exec(statement).all())


def load_field_access(
    session: Session, organization_id: str, role: str, object_definition_id: str
) -> tuple[list[FieldDefinition], dict[str, FieldAccess]]:
    """Active fields of an object and the role's access to each."""
    fields = active_fields(session, object_definition_id)
    permissions = role_permissions(session, organization_id, role, [f.id for f in fields])
    return fields, resolve_field_access(fields, permissions)


# =============================================================================
# Service
# =============================================================================


class MetadataService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    # =========================================================================
    # Objects
    # =========================================================================

    def list_objects(self, include_inactive: bool = False, custom_only: bool = False) -> list[ObjectDefinition]:
        statement = select(ObjectDefinition).where(ObjectDefinition.organization_id == self.ctx.organization_id)
        if not include_inactive:
            statement = statement.where(ObjectDefinition.is_active == True)  # noqa: E712
        if custom_only:
            statement = statement.where(ObjectDefinition.is_custom == True)  # noqa: E712
        return list(self.session.exec(statement.order_by(col(ObjectDefinition.label))).all())

    def get_object(self, object_id: str) -> Optional[ObjectDefinition]:
        obj = self.session.get(ObjectDefinition, object_id)
        if not obj or obj.organization_id != self.ctx.organization_id:
            return None
        return obj

    def get_object_by_api_name(self, api_name: str) -> Optional[ObjectDefinition]:
        return get_object_by_api_name(self.session, self.ctx.organization_id, api_name)

    def object_metadata(self, api_name: str) -> Optional[dict[str, Any]]:
        """Object, active fields with active picklist values, default layout and record types."""
        obj = self.get_object_by_api_name(api_name)
        if not obj or not obj.is_active:
            return None
        fields = []
        for field in active_fields(self.session, obj.id):
            values = [v for v in self.list_picklist_values(field.id) if v.is_active]
            fields.append({"field": field, "picklist_values": values})
        return {
            "object": obj,
            "fields": fields,
            "page_layout": self.default_layout(obj.id),
            "record_types": [rt for rt in self.list_record_types(obj.id) if rt.is_active],
        }

    def create_custom_object(self, data: CustomObjectCreate) -> dict[str, Any]:
        """Create a custom object with a Name field, its fields, a default layout and a nav entry."""
        api_name = custom_api_name(data.api_name)
        if self.get_object_by_api_name(api_name):
            raise ConflictError(f'An object with API name "{api_name}" already exists')
        field_names = [custom_api_name(f.api_name) for f in data.fields]
        if len(set(field_names)) != len(field_names):
            raise InvalidOperationError("Field API names must be unique")

        obj = ObjectDefinition(
            organization_id=self.ctx.organization_id,
            api_name=api_name,
            label=data.label.strip(),
            plural_label=data.plural_label.strip(),
            description=data.description,
            is_standard=False,
            is_custom=True,
            table_name=None,
            sharing_model=data.sharing_model,
            icon_name=data.icon_name,
            color=data.color,
            has_activities=data.has_activities,
            has_notes=data.has_notes,
        )
        self.session.add(obj)
        self.session.flush()

        name_field = FieldDefinition(
            organization_id=obj.organization_id,
            object_definition_id=obj.id,
            api_name="Name",
            label="Name",
            description="The primary identifier for this record",
            data_type=FieldDataType.TEXT.value,
            type_config=default_type_config(FieldDataType.TEXT.value),
            column_name="name",
            is_required=True,
            is_name_field=True,
            display_order=0,
        )
        self.session.add(name_field)
        fields = [name_field]
        for order, item in enumerate(data.fields, start=1):
            fields.append(self._new_custom_field(obj, item, order))
        self.session.flush()

        layout = PageLayout(
            organization_id=obj.organization_id,
            object_definition_id=obj.id,
            name="Default Layout",
            description=f"Default page layout for {obj.label}",
            layout_config=default_layout_config([f.api_name for f in fields], obj.has_activities),
            is_default=True,
        )
        self.session.add(layout)

        register_custom_object(self.session, obj)
        self.session.commit()
        for item in (obj, layout, *fields):
            self.session.refresh(item)

        logger.info(
            "Custom object created",
            extra={"organization_id": obj.organization_id, "object_type": obj.api_name},
        )
        return {"object": obj, "fields": fields, "page_layout": layout}

    def update_object(self, object_id: str, data: ObjectUpdate) -> Optional[ObjectDefinition]:
        obj = self.get_object(object_id)
        if not obj:
            return None
        if obj.is_standard:
            raise InvalidOperationError("Standard objects cannot be modified")
        apply_changes(obj, data.model_dump(exclude_unset=True))
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def deactivate_object(self, object_id: str) -> Optional[ObjectDefinition]:
        obj = self.get_object(object_id)
        if not obj:
            return None
        if obj.is_standard:
            raise InvalidOperationError("Standard objects cannot be deactivated")
        apply_changes(obj, {"is_active": False})
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    # =========================================================================
    # Fields
    # =========================================================================

    def list_fields(self, object_id: str, include_inactive: bool = False) -> list[FieldDefinition]:
        statement = select(FieldDefinition).where(
            FieldDefinition.organization_id == self.ctx.organization_id,
            FieldDefinition.object_definition_id == object_id,
        )
        if not include_inactive:
            statement = statement.where(FieldDefinition.is_active == True)  # noqa: E712
        return list(self.session.exec(statement.order_by(col(FieldDefinition.display_order))).all())

    def fields_for_object(self, api_name: str) -> Optional[list[FieldDefinition]]:
        obj = self.get_object_by_api_name(api_name)
        if not obj:
            return None
        return self.list_fields(obj.id)

    def get_field(self, field_id: str) -> Optional[FieldDefinition]:
        field = self.session.get(FieldDefinition, field_id)
        if not field or field.organization_id != self.ctx.organization_id:
            return None
        return field

    def create_field(self, object_id: str, data: FieldCreate) -> FieldDefinition:
        obj = self._require_object(object_id)
        api_name = custom_api_name(data.api_name)
        existing = self.session.exec(
            select(FieldDefinition).where(
                FieldDefinition.object_definition_id == obj.id, FieldDefinition.api_name == api_name
            )
        ).first()
        if existing:
            raise ConflictError(f"Field '{api_name}' already exists on {obj.api_name}")

        order = data.display_order
        if order is None:
            order = max((f.display_order for f in self.list_fields(obj.id, include_inactive=True)), default=-1) + 1
        field = self._new_custom_field(obj, data, order)
        self.session.commit()
        self.session.refresh(field)
        logger.info("Custom field created", extra={"object_type": obj.api_name, "record_id": field.id})
        return field

    def update_field(self, field_id: str, data: FieldUpdate) -> Optional[FieldDefinition]:
        field = self.get_field(field_id)
        if not field:
            return None
        if field.is_standard:
            raise InvalidOperationError("Standard fields cannot be modified")
        changes = data.model_dump(exclude_unset=True)
        if field.is_name_field:
            locked = sorted(k for k in NAME_FIELD_LOCKED if k in changes and changes[k] != getattr(field, k))
            if locked:
                raise InvalidOperationError(f"The name field cannot change: {', '.join(locked)}")
        apply_changes(field, changes)
        self.session.add(field)
        self.session.commit()
        self.session.refresh(field)
        return field

    def reorder_fields(self, object_id: str, field_ids: list[str]) -> list[FieldDefinition]:
        fields = {f.id: f for f in self.list_fields(object_id, include_inactive=True)}
        unknown = [fid for fid in field_ids if fid not in fields]
        if unknown:
            raise InvalidOperationError(f"Unknown field ids: {', '.join(unknown)}")
        for order, field_id in enumerate(field_ids):
            fields[field_id].display_order = order
            self.session.add(fields[field_id])
        self.session.commit()
        return self.list_fields(object_id)

    def deactivate_field(self, field_id: str) -> Optional[FieldDefinition]:
        field = self.get_field(field_id)
        if not field:
            return None
        if field.is_standard:
            raise InvalidOperationError("Standard fields cannot be deactivated")
        if field.is_name_field:
            raise InvalidOperationError("The name field cannot be deactivated")
        apply_changes(field, {"is_active": False})
        self.session.add(field)
        self.session.commit()
        self.session.refresh(field)
        return field

    def delete_field(self, field_id: str) -> bool:
        field = self.get_field(field_id)
        if not field:
            return False
        if field.is_standard or field.is_name_field:
            raise InvalidOperationError("Standard fields cannot be deleted")
        for value in self.list_picklist_values(field.id):
            self.session.delete(value)
        for permission in self.session.exec(
            select(FieldPermission).where(FieldPermission.field_definition_id == field.id)
        ).all():
            self.session.delete(permission)
        self.session.delete(field)
        self.session.commit()
        return True

    def _new_custom_field(self, obj: ObjectDefinition, item: CustomFieldInput, order: int) -> FieldDefinition:
        field = FieldDefinition(
            organization_id=obj.organization_id,
            object_definition_id=obj.id,
            api_name=custom_api_name(item.api_name),
            label=item.label.strip(),
            description=item.description,
            help_text=item.help_text,
            data_type=item.data_type,
            type_config=default_type_config(item.data_type, item.type_config),
            column_name=None,
            is_custom_field=True,
            is_required=item.is_required,
            is_unique=item.is_unique,
            default_value=item.default_value,
            is_sensitive=item.is_sensitive,
            display_order=order,
        )
        self.session.add(field)
        self.session.flush()
        if item.data_type in (FieldDataType.PICKLIST.value, FieldDataType.MULTIPICKLIST.value):
            add_picklist_values(self.session, obj.organization_id, field, item.picklist_values)
        return field

    # =========================================================================
    # Picklist values
    # =========================================================================

    def list_picklist_values(self, field_id: str) -> list[PicklistValue]:
        statement = (
            select(PicklistValue)
            .where(
                PicklistValue.field_definition_id == field_id,
                PicklistValue.organization_id == self.ctx.organization_id,
            )
            .order_by(col(PicklistValue.display_order))
        )
        return list(self.session.exec(statement).all())

    def get_picklist_value(self, value_id: str) -> Optional[PicklistValue]:
        value = self.session.get(PicklistValue, value_id)
        if not value or value.organization_id != self.ctx.organization_id:
            return None
        return value

    def create_picklist_value(self, field_id: str, data: PicklistValueCreate) -> PicklistValue:
        field = self.get_field(field_id)
        if not field:
            raise NotFoundError(f"Field '{field_id}' not found")
        if field.data_type not in (FieldDataType.PICKLIST.value, FieldDataType.MULTIPICKLIST.value):
            raise InvalidOperationError("Picklist values can only be added to picklist fields")
        existing = self.list_picklist_values(field.id)
        if any(v.value == data.value for v in existing):
            raise ConflictError(f"Picklist value '{data.value}' already exists")
        if data.is_default:
            self._clear_default_values(existing)
        value = PicklistValue(
            organization_id=field.organization_id,
            field_definition_id=field.id,
            value=data.value,
            label=data.label or data.value,
            display_order=data.display_order if data.display_order is not None else len(existing),
            is_default=data.is_default,
            color=data.color,
            controlling_values=data.controlling_values,
        )
        self.session.add(value)
        self.session.commit()
        self.session.refresh(value)
        return value

    def update_picklist_value(self, value_id: str, data: PicklistValueUpdate) -> Optional[PicklistValue]:
        value = self.get_picklist_value(value_id)
        if not value:
            return None
        if data.is_default:
            self._clear_default_values(self.list_picklist_values(value.field_definition_id))
        apply_changes(value, data.model_dump(exclude_unset=True))
        self.session.add(value)
        self.session.commit()
        self.session.refresh(value)
        return value

    def delete_picklist_value(self, value_id: str) -> bool:
        value = self.get_picklist_value(value_id)
        if not value:
            return False
        self.session.delete(value)
        self.session.commit()
        return True

    def reorder_picklist_values(self, field_id: str, value_ids: list[str]) -> list[PicklistValue]:
        values = {v.id: v for v in self.list_picklist_values(field_id)}
        for order, value_id in enumerate(value_ids):
            if value_id not in values:
                raise InvalidOperationError(f"Unknown picklist value '{value_id}'")
            values[value_id].display_order = order
            self.session.add(values[value_id])
        self.session.commit()
        return self.list_picklist_values(field_id)

    def _clear_default_values(self, values: list[PicklistValue]) -> None:
        for other in values:
            if other.is_default:
                other.is_default = False
                self.session.add(other)

    # =========================================================================
    # Page layouts
    # =========================================================================

    def list_layouts(self, object_id: str) -> list[PageLayout]:
        statement = select(PageLayout).where(
            PageLayout.organization_id == self.ctx.organization_id, PageLayout.object_definition_id == object_id
        )
        return list(self.session.exec(statement.order_by(col(PageLayout.name))).all())

    def get_layout(self, layout_id: str) -> Optional[PageLayout]:
        layout = self.session.get(PageLayout, layout_id)
        if not layout or layout.organization_id != self.ctx.organization_id:
            return None
        return layout

    def default_layout(self, object_id: str) -> Optional[PageLayout]:
        return self.session.exec(
            select(PageLayout).where(
                PageLayout.organization_id == self.ctx.organization_id,
                PageLayout.object_definition_id == object_id,
                PageLayout.is_default == True,  # noqa: E712
                PageLayout.is_active == True,  # noqa: E712
            )
        ).first()

    def create_layout(self, object_id: str, data: LayoutCreate) -> PageLayout:
        obj = self._require_object(object_id)
        if data.is_default:
            self._clear_default_layouts(obj.id)
        layout = PageLayout(organization_id=obj.organization_id, object_definition_id=obj.id, **data.model_dump())
        self.session.add(layout)
        self.session.commit()
        self.session.refresh(layout)
        return layout

    def update_layout(self, layout_id: str, data: LayoutUpdate) -> Optional[PageLayout]:
        layout = self.get_layout(layout_id)
        if not layout:
            return None
        apply_changes(layout, data.model_dump(exclude_unset=True))
        self.session.add(layout)
        self.session.commit()
        self.session.refresh(layout)
        return layout

    def set_default_layout(self, layout_id: str) -> Optional[PageLayout]:
        layout = self.get_layout(layout_id)
        if not layout:
            return None
        self._clear_default_layouts(layout.object_definition_id)
        apply_changes(layout, {"is_default": True, "is_active": True})
        self.session.add(layout)
        self.session.commit()
        self.session.refresh(layout)
        return layout

    def delete_layout(self, layout_id: str) -> bool:
        layout = self.get_layout(layout_id)
        if not layout:
            return False
        if layout.is_default:
            raise InvalidOperationError("The default layout cannot be deleted")
        self.session.delete(layout)
        self.session.commit()
        return True

    def _clear_default_layouts(self, object_id: str) -> None:
        for other in self.list_layouts(object_id):
            if other.is_default:
                other.is_default = False
                self.session.add(other)

    # =========================================================================
    # Record types
    # =========================================================================

    def list_record_types(self, object_id: str) -> list[RecordType]:
        statement = select(RecordType).where(
            RecordType.organization_id == self.ctx.organization_id, RecordType.object_definition_id == object_id
        )
        return list(self.session.exec(statement.order_by(col(RecordType.label))).all())

    def create_record_type(self, object_id: str, data: RecordTypeCreate) -> RecordType:
        obj = self._require_object(object_id)
        if any(rt.api_name == data.api_name for rt in self.list_record_types(obj.id)):
            raise ConflictError(f"Record type '{data.api_name}' already exists")
        if data.is_default:
            self._clear_default_record_types(obj.id)
        record_type = RecordType(organization_id=obj.organization_id, object_definition_id=obj.id, **data.model_dump())
        self.session.add(record_type)
        self.session.commit()
        self.session.refresh(record_type)
        return record_type

    def update_record_type(self, record_type_id: str, data: RecordTypeUpdate) -> Optional[RecordType]:
        record_type = self.session.get(RecordType, record_type_id)
        if not record_type or record_type.organization_id != self.ctx.organization_id:
            return None
        if data.is_default:
            self._clear_default_record_types(record_type.object_definition_id)
        apply_changes(record_type, data.model_dump(exclude_unset=True))
        self.session.add(record_type)
        self.session.commit()
        self.session.refresh(record_type)
        return record_type

    def _clear_default_record_types(self, object_id: str) -> None:
        for other in self.list_record_types(object_id):
            if other.is_default:
                other.is_default = False
                self.session.add(other)

    # =========================================================================
    # Field permissions
    # =========================================================================

    def permissions_for_role(self, role: str, object_id: Optional[str] = None) -> list[FieldPermission]:
        field_ids = [f.id for f in self.list_fields(object_id, include_inactive=True)] if object_id else None
        return role_permissions(self.session, self.ctx.organization_id, role, field_ids)

    def set_permission(self, role: str, field_id: str, is_visible: bool, is_editable: bool) -> FieldPermission:
        field = self.get_field(field_id)
        if not field:
            raise NotFoundError(f"Field '{field_id}' not found")
        permission = self.session.exec(
            select(FieldPermission).where(FieldPermission.role == role, FieldPermission.field_definition_id == field_id)
        ).first()
        # Hidden fields cannot be editable
        values = {"is_visible": is_visible, "is_editable": is_editable and is_visible}
        if permission is None:
            permission = FieldPermission(
                organization_id=self.ctx.organization_id, role=role, field_definition_id=field_id, **values
            )
        else:
            apply_changes(permission, values)
        self.session.add(permission)
        self.session.commit()
        self.session.refresh(permission)
        return permission

    def bulk_set_permissions(self, data: FieldPermissionBulk) -> list[FieldPermission]:
        return [
            self.set_permission(data.role, item.field_definition_id, item.is_visible, item.is_editable)
            for item in data.permissions
        ]

    def reset_permissions(self, role: str, object_id: Optional[str] = None) -> int:
        """Delete the role's overrides, restoring the default (visible, editable)."""
        permissions = self.permissions_for_role(role, object_id)
        for permission in permissions:
            self.session.delete(permission)
        self.session.commit()
        logger.info("Field permissions reset", extra={"status": f"{role}: {len(permissions)} removed"})
        return len(permissions)

    def copy_permissions(self, from_role: str, to_role: str) -> list[FieldPermission]:
        if from_role == to_role:
            raise InvalidOperationError("Source and target roles must differ")
        for permission in self.permissions_for_role(to_role):
            self.session.delete(permission)
        self.session.flush()
        copies = [
            FieldPermission(
                organization_id=self.ctx.organization_id,
                role=to_role,
                field_definition_id=p.field_definition_id,
                is_visible=p.is_visible,
                is_editable=p.is_editable,
            )
            for p in self.permissions_for_role(from_role)
        ]
        self.session.add_all(copies)
        self.session.commit()
        return self.permissions_for_role(to_role)

    def permission_matrix(self, object_api_name: str, role: str) -> Optional[dict[str, Any]]:
        obj = self.get_object_by_api_name(object_api_name)
        if not obj:
            return None
        fields = active_fields(self.session, obj.id)
        permissions = role_permissions(self.session, self.ctx.organization_id, role, [f.id for f in fields])
        return build_permission_matrix(obj.api_name, role, fields, permissions)

    def accessible_fields(self, object_api_name: str) -> Optional[list[dict[str, Any]]]:
        """Fields the caller can read, each flagged with whether they can edit it."""
        obj = self.get_object_by_api_name(object_api_name)
        if not obj:
            return None
        fields = active_fields(self.session, obj.id)
        permissions = role_permissions(self.session, self.ctx.organization_id, self.ctx.role, [f.id for f in fields])
        access = resolve_field_access(fields, permissions)
        visible = filter_fields_by_permissions(fields, permissions)
        return [{"field": f, "can_edit": access[f.id].can_edit} for f in visible]

    def _require_object(self, object_id: str) -> ObjectDefinition:
        obj = self.get_object(object_id)
        if not obj:
            raise NotFoundError(f"Object '{object_id}' not found")
        return obj
