"""Saved list views: visibility, defaults, execution and bulk actions."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from sqlmodel import Session, col, or_, select

from doula_crm.core.config import get_settings
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import AccessDeniedError, InvalidOperationError
from doula_crm.core.models import apply_changes
from doula_crm.records.registry import api_name_for
from doula_crm.records.service import RecordService

from .models import ListView, ViewVisibility
from .query import DEFAULT_LIMIT, target_for
from .schemas import ListViewCreate, ListViewUpdate

logger = logging.getLogger(__name__)


@lru_cache
def load_view_defaults(path: Optional[str] = None) -> dict[str, Any]:
    source = Path(path) if path else Path(get_settings().seed_metadata_dir) / "list_views.yaml"
    with open(source, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def default_columns(object_type: str) -> list[dict[str, Any]]:
    target_for(object_type)
    columns = load_view_defaults().get(object_type, {}).get("columns", [])
    return [{"visible": True, "sortable": True, "filterable": True, **column} for column in columns]


def quick_filters(object_type: str) -> dict[str, list[dict[str, str]]]:
    target_for(object_type)
    options = load_view_defaults().get(object_type, {}).get("quick_filters") or {}
    return {
        field: [{"value": value, "label": value.replace("_", " ").title()} for value in values]
        for field, values in options.items()
    }


class ListViewService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx
        self.records = RecordService(session, ctx)

    # =========================================================================
    # Saved views
    # =========================================================================

    def list_views(self, object_type: str) -> list[ListView]:
        """The caller's own views plus shared and org-wide views; pinned first, then by name."""
        statement = (
            select(ListView)
            .where(
                ListView.organization_id == self.ctx.organization_id,
                ListView.object_type == object_type,
                or_(ListView.created_by == self.ctx.user_id, ListView.visibility != ViewVisibility.PRIVATE.value),
            )
            .order_by(col(ListView.is_pinned).desc(), col(ListView.name))
        )
        return list(self.session.exec(statement).all())

    def get_view(self, view_id: str) -> Optional[ListView]:
        view = self.session.get(ListView, view_id)
        if not view or view.organization_id != self.ctx.organization_id:
            return None
        if view.visibility == ViewVisibility.PRIVATE.value and view.created_by != self.ctx.user_id:
            return None
        return view

    def create_view(self, data: ListViewCreate) -> ListView:
        values = data.model_dump()
        if data.is_default:
            self._clear_defaults(data.object_type)
        view = ListView(organization_id=self.ctx.organization_id, created_by=self.ctx.user_id, **values)
        self.session.add(view)
        self.session.commit()
        self.session.refresh(view)
        logger.info(
            "List view created",
            extra={"organization_id": view.organization_id, "record_id": view.id, "object_type": view.object_type},
        )
        return view

    def update_view(self, view_id: str, data: ListViewUpdate) -> Optional[ListView]:
        view = self._editable(view_id)
        if not view:
            return None
        apply_changes(view, data.model_dump(exclude_unset=True))
        self.session.add(view)
        self.session.commit()
        self.session.refresh(view)
        return view

    def delete_view(self, view_id: str) -> bool:
        view = self._editable(view_id)
        if not view:
            return False
        self.session.delete(view)
        self.session.commit()
        return True

    def pin_view(self, view_id: str, is_pinned: bool) -> Optional[ListView]:
        return self.update_view(view_id, ListViewUpdate(is_pinned=is_pinned))

    def set_default(self, view_id: str) -> Optional[ListView]:
        """Make a view the caller's default for its object type."""
        view = self.get_view(view_id)
        if not view:
            return None
        self._clear_defaults(view.object_type)
        apply_changes(view, {"is_default": True})
        self.session.add(view)
        self.session.commit()
        self.session.refresh(view)
        return view

    def _clear_defaults(self, object_type: str) -> None:
        for other in self.session.exec(
            select(ListView).where(
                ListView.organization_id == self.ctx.organization_id,
                ListView.object_type == object_type,
                ListView.created_by == self.ctx.user_id,
                ListView.is_default == True,  # noqa: E712
            )
        ).all():
            other.is_default = False
            self.session.add(other)

    def _editable(self, view_id: str) -> Optional[ListView]:
        view = self.get_view(view_id)
        if view and view.created_by != self.ctx.user_id and not self.ctx.is_admin:
            raise AccessDeniedError("Only the creator or an administrator can change this view")
        return view

    # =========================================================================
    # Execution
    # =========================================================================

    def execute(
        self,
        object_type: str,
        filters: list[dict[str, Any]],
        sort_config: Optional[dict[str, Any]] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
        search: Optional[str] = None,
    ) -> dict[str, Any]:
        target_for(object_type)
        rows, count = self.records.fetch(
            api_name_for(object_type), filters, sort_config, search=search, limit=limit, offset=offset
        )
        return {"data": rows, "count": count, "limit": limit, "offset": offset}

    def execute_view(
        self, view_id: str, limit: int = DEFAULT_LIMIT, offset: int = 0, search: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        view = self.get_view(view_id)
        if not view:
            return None
        return self.execute(view.object_type, view.filters, view.sort_config, limit, offset, search)

    # =========================================================================
    # Bulk and inline edits
    # =========================================================================

    def bulk_update_status(self, object_type: str, ids: list[str], status: str) -> dict[str, Any]:
        target = target_for(object_type)
        if "status" not in target.columns:
            raise InvalidOperationError(f"{object_type} have no status field")
        return self.records.bulk_update(api_name_for(object_type), ids, {"status": status})

    def bulk_delete(self, object_type: str, ids: list[str]) -> dict[str, Any]:
        return self.records.bulk_delete(api_name_for(object_type), ids)

    def inline_update(self, object_type: str, record_id: str, field: str, value: Any) -> Optional[dict[str, Any]]:
        return self.records.inline_update(api_name_for(object_type), record_id, field, value)
