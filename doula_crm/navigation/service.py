"""Navigation items and their per-role visibility."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml
from sqlmodel import Session, col, select

from doula_crm.core.config import get_settings
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import ConflictError, InvalidOperationError, NotFoundError
from doula_crm.core.models import apply_changes
from doula_crm.metadata.models import ObjectDefinition
from doula_crm.organizations.models import ROLE_HIERARCHY

from .models import ItemType, NavigationItem, NavigationRoleVisibility, NavType, VisibilityState
from .schemas import BulkVisibilityItem, DisplayUpdate, NavItemCreate

logger = logging.getLogger(__name__)

SORT_STEP = 10


@lru_cache
def load_navigation_defaults(path: Optional[str] = None) -> dict[str, Any]:
    source = Path(path) if path else Path(get_settings().seed_metadata_dir) / "navigation.yaml"
    with open(source, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _role_defaults(nav_type: str) -> dict[str, str]:
    defaults = load_navigation_defaults().get("role_defaults", {})
    return defaults.get(nav_type) or {role: VisibilityState.VISIBLE.value for role in ROLE_HIERARCHY}


def _add_item(session: Session, item: NavigationItem) -> NavigationItem:
    """Insert ``item`` with the default visibility of its nav type for every role."""
    session.add(item)
    session.flush()
    for role, state in _role_defaults(item.nav_type).items():
        session.add(
            NavigationRoleVisibility(
                organization_id=item.organization_id,
                navigation_item_id=item.id,
                role=role,
                visibility_state=state,
            )
        )
    return item


def _object_item(obj: ObjectDefinition, sort_order: int) -> NavigationItem:
    return NavigationItem(
        organization_id=obj.organization_id,
        item_type=ItemType.OBJECT.value,
        item_key=obj.api_name,
        display_name=obj.plural_label,
        icon_name=obj.icon_name,
        href=f"/objects/{obj.api_name}",
        nav_type=NavType.PRIMARY_TAB.value,
        sort_order=sort_order,
        object_definition_id=obj.id,
    )


def seed_default_navigation(
    session: Session, organization_id: str, objects: Iterable[ObjectDefinition]
) -> list[NavigationItem]:
    """Create object tabs, tools and admin entries. Flushes; the caller commits."""
    defaults = load_navigation_defaults()
    order = {name: i for i, name in enumerate(defaults.get("object_tab_order", []))}
    objects = sorted(objects, key=lambda o: (order.get(o.api_name, len(order)), o.label))

    items = [_add_item(session, _object_item(obj, (i + 1) * SORT_STEP)) for i, obj in enumerate(objects)]

    counters: dict[str, int] = {}
    for raw in defaults.get("items", []):
        nav_type = raw.get("nav_type", NavType.TOOLS_MENU.value)
        counters[nav_type] = counters.get(nav_type, 0) + SORT_STEP
        items.append(
            _add_item(
                session,
                NavigationItem(
                    organization_id=organization_id,
                    item_type=raw.get("item_type", ItemType.TOOL.value),
                    item_key=raw["item_key"],
                    display_name=raw["display_name"],
                    icon_name=raw.get("icon_name"),
                    href=raw.get("href"),
                    nav_type=nav_type,
                    sort_order=counters[nav_type],
                    is_required=raw.get("is_required", False),
                ),
            )
        )
    session.flush()
    logger.info(
        "Default navigation seeded",
        extra={"organization_id": organization_id, "status": f"{len(items)} items"},
    )
    return items


def register_custom_object(session: Session, obj: ObjectDefinition) -> Optional[NavigationItem]:
    """Add a primary tab for a new custom object. Does nothing if one exists."""
    existing = session.exec(
        select(NavigationItem).where(NavigationItem.object_definition_id == obj.id)
    ).first()
    if existing:
        return None
    last = session.exec(
        select(NavigationItem.sort_order)
        .where(
            NavigationItem.organization_id == obj.organization_id,
            NavigationItem.nav_type == NavType.PRIMARY_TAB.value,
        )
        .order_by(col(NavigationItem.sort_order).desc())
    ).first()
    return _add_item(session, _object_item(obj, (last or 0) + SORT_STEP))


class NavigationService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    def list_items(self, include_inactive: bool = False) -> list[NavigationItem]:
        statement = select(NavigationItem).where(NavigationItem.organization_id == self.ctx.organization_id)
        if not include_inactive:
            statement = statement.where(NavigationItem.is_active == True)  # noqa: E712
        statement = statement.order_by(col(NavigationItem.nav_type), col(NavigationItem.sort_order))
        return list(self.session.exec(statement).all())

    def get_item(self, item_id: str) -> Optional[NavigationItem]:
        item = self.session.get(NavigationItem, item_id)
        if not item or item.organization_id != self.ctx.organization_id:
            return None
        return item

    def role_visibility(self) -> dict[str, dict[str, str]]:
        """Item id -> role -> visibility state."""
        rows = self.session.exec(
            select(NavigationRoleVisibility).where(
                NavigationRoleVisibility.organization_id == self.ctx.organization_id
            )
        ).all()
        result: dict[str, dict[str, str]] = {}
        for row in rows:
            result.setdefault(row.navigation_item_id, {})[row.role] = row.visibility_state
        return result

    def config_for_caller(self) -> dict[str, Any]:
        """Visible items grouped by nav type, plus the items the caller may add."""
        visibility = self.role_visibility()
        config: dict[str, Any] = {
            "role": self.ctx.role,
            "primary_tabs": [],
            "tools_menu": [],
            "admin_menu": [],
            "available": [],
        }
        groups = {
            NavType.PRIMARY_TAB.value: "primary_tabs",
            NavType.TOOLS_MENU.value: "tools_menu",
            NavType.ADMIN_MENU.value: "admin_menu",
        }
        for item in self.list_items():
            state = visibility.get(item.id, {}).get(self.ctx.role, VisibilityState.VISIBLE.value)
            if state == VisibilityState.VISIBLE.value:
                config[groups[item.nav_type]].append(item)
            elif state == VisibilityState.AVAILABLE.value:
                config["available"].append(item)
        return config

    def admin_list(self) -> list[dict[str, Any]]:
        visibility = self.role_visibility()
        return [
            {"item": item, "role_visibility": visibility.get(item.id, {})}
            for item in self.list_items(include_inactive=True)
        ]

    def set_visibility(self, item_id: str, role: str, state: str) -> NavigationRoleVisibility:
        item = self.get_item(item_id)
        if not item:
            raise NotFoundError(f"Navigation item '{item_id}' not found")
        if item.is_required and role in ("owner", "admin") and state != VisibilityState.VISIBLE.value:
            raise InvalidOperationError(f"'{item.display_name}' must stay visible to administrators")
        row = self.session.exec(
            select(NavigationRoleVisibility).where(
                NavigationRoleVisibility.navigation_item_id == item.id, NavigationRoleVisibility.role == role
            )
        ).first()
        if row is None:
            row = NavigationRoleVisibility(
                organization_id=item.organization_id, navigation_item_id=item.id, role=role, visibility_state=state
            )
        else:
            apply_changes(row, {"visibility_state": state})
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def bulk_set_visibility(self, updates: list[BulkVisibilityItem]) -> int:
        for update in updates:
            self.set_visibility(update.navigation_item_id, update.role, update.visibility_state)
        return len(updates)

    def update_display(self, item_id: str, data: DisplayUpdate) -> Optional[NavigationItem]:
        item = self.get_item(item_id)
        if not item:
            return None
        changes = data.model_dump(exclude_unset=True)
        if changes.get("is_active") is False and item.is_required:
            raise InvalidOperationError(f"'{item.display_name}' cannot be deactivated")
        apply_changes(item, changes)
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def reorder(self, nav_type: str, item_ids: list[str]) -> list[NavigationItem]:
        items = {i.id: i for i in self.list_items(include_inactive=True) if i.nav_type == nav_type}
        for position, item_id in enumerate(item_ids, start=1):
            item = items.get(item_id)
            if item is None:
                raise InvalidOperationError(f"Item '{item_id}' is not in {nav_type}")
            item.sort_order = position * SORT_STEP
            self.session.add(item)
        self.session.commit()
        return [i for i in self.list_items(include_inactive=True) if i.nav_type == nav_type]

    def add_item(self, data: NavItemCreate) -> NavigationItem:
        if any(i.item_key == data.item_key for i in self.list_items(include_inactive=True)):
            raise ConflictError(f"Navigation item '{data.item_key}' already exists")
        if data.item_type == ItemType.OBJECT.value:
            obj = self.session.get(ObjectDefinition, data.object_definition_id or "")
            if not obj or obj.organization_id != self.ctx.organization_id:
                raise InvalidOperationError("Object items need a valid object_definition_id")
        elif not data.href:
            raise InvalidOperationError("Tool and link items need an href")

        last = max(
            (i.sort_order for i in self.list_items(include_inactive=True) if i.nav_type == data.nav_type), default=0
        )
        item = _add_item(
            self.session,
            NavigationItem(organization_id=self.ctx.organization_id, sort_order=last + SORT_STEP, **data.model_dump()),
        )
        self.session.commit()
        self.session.refresh(item)
        return item

    def delete_item(self, item_id: str) -> bool:
        item = self.get_item(item_id)
        if not item:
            return False
        if item.is_required:
            raise InvalidOperationError(f"'{item.display_name}' cannot be removed")
        self._delete(item)
        self.session.commit()
        return True

    def reset_to_defaults(self) -> list[NavigationItem]:
        """Replace the navigation with the defaults plus tabs for active custom objects."""
        for item in self.list_items(include_inactive=True):
            self._delete(item)
        self.session.flush()

        objects = list(
            self.session.exec(
                select(ObjectDefinition).where(
                    ObjectDefinition.organization_id == self.ctx.organization_id,
                    ObjectDefinition.is_active == True,  # noqa: E712
                )
            ).all()
        )
        seed_default_navigation(self.session, self.ctx.organization_id, [o for o in objects if o.is_standard])
        for obj in sorted((o for o in objects if not o.is_standard), key=lambda o: o.created_at):
            register_custom_object(self.session, obj)
        self.session.commit()
        logger.info("Navigation reset to defaults", extra={"organization_id": self.ctx.organization_id})
        return self.list_items()

    def _delete(self, item: NavigationItem) -> None:
        for row in self.session.exec(
            select(NavigationRoleVisibility).where(NavigationRoleVisibility.navigation_item_id == item.id)
        ).all():
            self.session.delete(row)
        self.session.delete(item)
