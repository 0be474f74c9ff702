"""Metadata-driven CRUD over standard and custom object records.

Every read passes through field-level security and record sharing; every write
is checked against the caller's field edit permissions and record access.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from sqlmodel import Session, SQLModel, col, select

from doula_crm import events
from doula_crm.core.config import get_settings
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import AccessDeniedError, CRMError, InvalidOperationError, NotFoundError
from doula_crm.core.models import apply_changes, to_dict
from doula_crm.leads.models import LeadStatus
from doula_crm.leads.service import email_domain
from doula_crm.list_views.query import (
    DEFAULT_LIMIT,
    QueryTarget,
    apply_sort,
    build_statement,
    coerce_value,
    execute_query,
)
from doula_crm.list_views.schemas import FilterCondition
from doula_crm.metadata.models import FieldDataType, FieldDefinition, ObjectDefinition, PicklistValue
from doula_crm.metadata.security import (
    FieldAccess,
    field_key,
    filter_record_data,
    unreadable_fields,
    validate_field_edit_permissions,
)
from doula_crm.metadata.service import get_object_by_api_name, load_field_access
from doula_crm.organizations.models import User
from doula_crm.sharing.access import AccessResult, active_rules, check_record_access, sharing_model_access
from doula_crm.sharing.models import SharingRule
from doula_crm.sharing.service import record_security_context

from .models import CrmRecord
from .registry import CUSTOM_OWNER_COLUMN, RecordObject, query_target, record_object
from .schemas import RecordQuery

logger = logging.getLogger(__name__)

PICKLIST_TYPES = (FieldDataType.PICKLIST.value, FieldDataType.MULTIPICKLIST.value)


@dataclass
class ResolvedObject:
    """An object definition with everything needed to read and write its records."""

    obj: ObjectDefinition
    entry: Optional[RecordObject]
    target: QueryTarget
    fields: list[FieldDefinition]
    access: dict[str, FieldAccess]

    @property
    def model(self) -> type[SQLModel]:
        return self.target.model

    @property
    def owner_column(self) -> Optional[str]:
        return self.entry.owner_column if self.entry else CUSTOM_OWNER_COLUMN

    def owner_of(self, row: SQLModel) -> Optional[str]:
        return getattr(row, self.owner_column) if self.owner_column else None


class RecordService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    # =========================================================================
    # Reads
    # =========================================================================

    def query(self, api_name: str, params: RecordQuery) -> dict[str, Any]:
        """Filtered, searched, sorted and paginated records the caller can read."""
        settings = get_settings()
        page_size = min(params.page_size or settings.default_page_size, settings.max_page_size)
        records, total = self.fetch(
            api_name,
            [f.model_dump() for f in params.filters],
            params.sort.model_dump() if params.sort else None,
            search=params.search,
            search_fields=params.search_fields,
            limit=page_size,
            offset=(params.page - 1) * page_size,
        )
        return {
            "records": records,
            "total": total,
            "page": params.page,
            "page_size": page_size,
            "total_pages": math.ceil(total / page_size) if page_size else 0,
        }

    def fetch(
        self,
        api_name: str,
        filters: list[dict[str, Any]],
        sort: Optional[dict[str, Any]] = None,
        search: Optional[str] = None,
        search_fields: Sequence[str] = (),
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], int]:
        """One page of readable records plus the total count of readable matches."""
        resolved = self.resolve(api_name)
        referenced = [f["field"] for f in filters] + list(search_fields)
        if sort:
            referenced.append(sort["field"])
        hidden = unreadable_fields(referenced, resolved.access)
        if hidden:
            raise AccessDeniedError(f"You do not have access to: {', '.join(hidden)}")

        if self._needs_sharing_filter(resolved):
            statement = build_statement(resolved.target, self.ctx.organization_id, filters, search, search_fields)
            rules = active_rules(self.session, self.ctx.organization_id, resolved.obj.api_name)
            rows = [
                row
                for row in self.session.exec(apply_sort(statement, resolved.target, sort)).all()
                if self._access(resolved, row, rules).can_read
            ]
            total = len(rows)
            rows = rows[offset : offset + limit]
        else:
            result = execute_query(
                self.session,
                self.ctx.organization_id,
                resolved.target,
                filters,
                sort,
                limit=limit,
                offset=offset,
                search=search,
                search_fields=search_fields,
            )
            rows, total = result.rows, result.total
        return [self._present(resolved, row) for row in rows], total

    def get(self, api_name: str, record_id: str) -> Optional[dict[str, Any]]:
        resolved = self.resolve(api_name)
        row = self._get_row(resolved, record_id)
        if not row:
            return None
        if not self._access(resolved, row).can_read:
            raise AccessDeniedError("You do not have access to this record")
        return self._present(resolved, row)

    def related(
        self, api_name: str, parent_field: str, parent_id: str, params: Optional[RecordQuery] = None
    ) -> dict[str, Any]:
        """Records of ``api_name`` whose ``parent_field`` points at ``parent_id``."""
        params = params or RecordQuery()
        parent_filter = FilterCondition(field=parent_field, operator="equals", value=parent_id)
        return self.query(api_name, params.model_copy(update={"filters": [parent_filter, *params.filters]}))

    def security_context(self, api_name: str, record_id: str) -> Optional[dict[str, Any]]:
        resolved = self.resolve(api_name)
        row = self._get_row(resolved, record_id)
        if not row:
            return None
        return record_security_context(
            self.ctx, resolved.owner_of(row), self._access(resolved, row), resolved.access
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, api_name: str, values: dict[str, Any]) -> dict[str, Any]:
        resolved = self.resolve(api_name)
        self._check_writable(resolved)
        columns, custom = self._prepare_values(resolved, values)
        self._check_required(resolved, columns, custom)

        if resolved.entry is None:
            name = columns.pop("name", None)
            if not name:
                raise InvalidOperationError("Name is required")
            row: SQLModel = CrmRecord(
                organization_id=self.ctx.organization_id,
                object_definition_id=resolved.obj.id,
                name=name,
                owner_id=columns.pop(CUSTOM_OWNER_COLUMN, None) or self.ctx.user_id,
                data=custom,
            )
        else:
            if resolved.entry.api_name == "Client":
                columns["status"] = LeadStatus.CLIENT.value
            if resolved.entry.owner_column:
                columns[resolved.entry.owner_column] = columns.get(resolved.entry.owner_column) or self.ctx.user_id
            if resolved.target.json_column:
                columns[resolved.target.json_column] = custom
            self._derive(resolved, columns)
            row = resolved.model(organization_id=self.ctx.organization_id, **columns)

        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        logger.info(
            "Record created",
            extra={"organization_id": self.ctx.organization_id, "object_type": api_name, "record_id": row.id},
        )

        entry = resolved.entry
        if entry and entry.event_type:
            events.record_created(
                self.session, self.ctx.organization_id, entry.event_type, to_dict(row), entry.created_event
            )
            self.session.refresh(row)
        return self._present(resolved, row)

    def update(self, api_name: str, record_id: str, values: dict[str, Any]) -> Optional[dict[str, Any]]:
        resolved = self.resolve(api_name)
        self._check_writable(resolved)
        row = self._get_row(resolved, record_id)
        if not row:
            return None
        if not self._access(resolved, row).can_write:
            raise AccessDeniedError("You do not have permission to edit this record")

        columns, custom = self._prepare_values(resolved, values)
        previous = to_dict(row)
        if custom:
            storage = resolved.target.json_column
            columns[storage] = {**(getattr(row, storage) or {}), **custom}
        self._derive(resolved, columns)
        apply_changes(row, columns)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)

        entry = resolved.entry
        if entry and entry.event_type:
            events.record_updated(
                self.session, self.ctx.organization_id, entry.event_type, to_dict(row), previous, entry.updated_event
            )
            self.session.refresh(row)
        return self._present(resolved, row)

    def inline_update(self, api_name: str, record_id: str, field: str, value: Any) -> Optional[dict[str, Any]]:
        return self.update(api_name, record_id, {field: value})

    def delete(self, api_name: str, record_id: str) -> bool:
        resolved = self.resolve(api_name)
        self._check_writable(resolved)
        row = self._get_row(resolved, record_id)
        if not row:
            return False
        if not (self.ctx.is_admin or resolved.owner_of(row) == self.ctx.user_id):
            raise AccessDeniedError("Only the record owner or an administrator can delete this record")
        self.session.delete(row)
        self.session.commit()
        logger.info(
            "Record deleted",
            extra={"organization_id": self.ctx.organization_id, "object_type": api_name, "record_id": record_id},
        )
        return True

    def bulk_delete(self, api_name: str, ids: list[str]) -> dict[str, Any]:
        return self._bulk(ids, lambda record_id: self.delete(api_name, record_id))

    def bulk_update(self, api_name: str, ids: list[str], values: dict[str, Any]) -> dict[str, Any]:
        return self._bulk(ids, lambda record_id: self.update(api_name, record_id, values))

    def _bulk(self, ids: list[str], action: Callable[[str], Any]) -> dict[str, Any]:
        """Apply ``action`` to each id, collecting per-record failures."""
        succeeded, failed = [], {}
        for record_id in dict.fromkeys(ids):
            try:
                if action(record_id):
                    succeeded.append(record_id)
                else:
                    failed[record_id] = "Record not found"
            except CRMError as exc:
                self.session.rollback()
                failed[record_id] = exc.message
        return {"succeeded": succeeded, "failed": failed}

    # =========================================================================
    # Helpers
    # =========================================================================

    def resolve(self, api_name: str) -> ResolvedObject:
        obj = get_object_by_api_name(self.session, self.ctx.organization_id, api_name)
        if not obj or not obj.is_active:
            raise NotFoundError(f"Object '{api_name}' not found")
        fields, access = load_field_access(self.session, self.ctx.organization_id, self.ctx.role, obj.id)
        return ResolvedObject(obj, record_object(obj), query_target(obj, fields), fields, access)

    def _get_row(self, resolved: ResolvedObject, record_id: str) -> Optional[SQLModel]:
        row = self.session.get(resolved.model, record_id)
        if not row or row.organization_id != self.ctx.organization_id:
            return None
        if resolved.entry is None and row.object_definition_id != resolved.obj.id:
            return None
        if resolved.entry and resolved.entry.api_name == "Client" and row.status != LeadStatus.CLIENT.value:
            return None
        return row

    def _serialize(self, resolved: ResolvedObject, row: SQLModel) -> dict[str, Any]:
        record = to_dict(row)
        if resolved.entry is None:
            record["custom_fields"] = record.pop("data", None) or {}
        return record

    def _present(self, resolved: ResolvedObject, row: SQLModel) -> dict[str, Any]:
        return filter_record_data(self._serialize(resolved, row), resolved.access)

    def _access(
        self, resolved: ResolvedObject, row: SQLModel, rules: Optional[list[SharingRule]] = None
    ) -> AccessResult:
        record = self._serialize(resolved, row)
        flat = {**record, **(record.get("custom_fields") or {})}
        return check_record_access(
            self.session,
            self.ctx,
            resolved.obj.api_name,
            row.id,
            resolved.owner_of(row),
            flat,
            row.organization_id,
            rules,
        )

    def _needs_sharing_filter(self, resolved: ResolvedObject) -> bool:
        return not self.ctx.is_admin and sharing_model_access(resolved.obj.sharing_model) is None

    def _check_writable(self, resolved: ResolvedObject) -> None:
        if resolved.entry and resolved.entry.read_only:
            raise InvalidOperationError(f"{resolved.obj.plural_label} are read only through the record API")

    def _prepare_values(
        self, resolved: ResolvedObject, values: dict[str, Any]
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Split input into column values and custom field values, enforcing edit permissions."""
        standard = {field_key(f): f for f in resolved.fields if not f.is_custom_field}
        custom_defs = {f.api_name: f for f in resolved.fields if f.is_custom_field}
        items = dict(values)
        nested = items.pop("custom_fields", None) or {}

        columns: dict[str, Any] = {}
        custom: dict[str, Any] = {}
        unknown = []
        for key, value in items.items():
            if key in custom_defs:
                custom[key] = value
            elif key in standard or key == resolved.owner_column:
                columns[key] = value
            else:
                unknown.append(key)
        for key, value in nested.items():
            if key in custom_defs:
                custom[key] = value
            else:
                unknown.append(key)
        if unknown:
            raise InvalidOperationError(f"Unknown field(s): {', '.join(sorted(unknown))}")

        denied = validate_field_edit_permissions([*columns, *custom], resolved.access)
        if denied:
            raise AccessDeniedError(f"You do not have permission to edit: {', '.join(denied)}")
        if custom and not resolved.target.json_column:
            raise InvalidOperationError(f"{resolved.obj.label} records cannot store custom field values")

        table_columns = resolved.model.__table__.columns
        for key in list(columns):
            if key in table_columns:
                columns[key] = coerce_value(getattr(resolved.model, key), columns[key])
        owner_id = columns.get(resolved.owner_column) if resolved.owner_column else None
        if owner_id:
            owner = self.session.get(User, owner_id)
            if not owner or owner.organization_id != self.ctx.organization_id:
                raise InvalidOperationError("Assigned user not found")
        self._check_picklists(resolved, {**columns, **custom})
        return columns, custom

    def _check_picklists(self, resolved: ResolvedObject, values: dict[str, Any]) -> None:
        fields = {
            f.id: f
            for f in resolved.fields
            if f.data_type in PICKLIST_TYPES
            and values.get(f.api_name if f.is_custom_field else field_key(f)) is not None
        }
        if not fields:
            return
        allowed: dict[str, set[str]] = {}
        for value in self.session.exec(
            select(PicklistValue).where(
                col(PicklistValue.field_definition_id).in_(list(fields)),
                PicklistValue.is_active == True,  # noqa: E712
            )
        ).all():
            allowed.setdefault(value.field_definition_id, set()).add(value.value)

        for field_id, field in fields.items():
            if field_id not in allowed:
                continue
            raw = values[field.api_name if field.is_custom_field else field_key(field)]
            chosen = raw if isinstance(raw, list) else [raw]
            invalid = [str(v) for v in chosen if str(v) not in allowed[field_id]]
            if invalid:
                raise InvalidOperationError(f"Invalid value for {field.label}: {', '.join(invalid)}")

    def _check_required(self, resolved: ResolvedObject, columns: dict[str, Any], custom: dict[str, Any]) -> None:
        missing = []
        model_fields = resolved.model.model_fields
        for field in resolved.fields:
            if not field.is_required or field.is_read_only:
                continue
            if field.is_custom_field:
                value = custom.get(field.api_name)
            else:
                key = field_key(field)
                if key in model_fields and not model_fields[key].is_required():
                    continue
                value = columns.get(key)
            if value is None or value == "":
                missing.append(field.label)
        if missing:
            raise InvalidOperationError(f"Required field(s) missing: {', '.join(missing)}")

    def _derive(self, resolved: ResolvedObject, columns: dict[str, Any]) -> None:
        if resolved.entry and resolved.entry.event_type == "lead" and columns.get("email"):
            columns["email_domain"] = email_domain(columns["email"])
