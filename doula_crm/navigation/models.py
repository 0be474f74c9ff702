"""SQLModel tables for the configurable admin navigation."""

from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class ItemType(str, Enum):
    OBJECT = "object"
    TOOL = "tool"
    EXTERNAL_LINK = "external_link"


class NavType(str, Enum):
    PRIMARY_TAB = "primary_tab"
    TOOLS_MENU = "tools_menu"
    ADMIN_MENU = "admin_menu"


class VisibilityState(str, Enum):
    """visible: always shown; available: user may add it; hidden: not accessible."""

    VISIBLE = "visible"
    AVAILABLE = "available"
    HIDDEN = "hidden"


class NavigationItem(TenantModel, table=True):
    __tablename__ = "navigation_items"

    item_type: str = ItemType.TOOL.value
    item_key: str = Field(index=True)
    display_name: str
    icon_name: Optional[str] = None
    href: Optional[str] = None
    nav_type: str = Field(default=NavType.PRIMARY_TAB.value, index=True)
    sort_order: int = 0
    object_definition_id: Optional[str] = Field(
        default=None, foreign_key="object_definitions.id", index=True, ondelete="CASCADE"
    )
    is_required: bool = False
    is_active: bool = True


class NavigationRoleVisibility(TenantModel, table=True):
    __tablename__ = "navigation_role_visibility"
    __table_args__ = (UniqueConstraint("navigation_item_id", "role"),)

    navigation_item_id: str = Field(foreign_key="navigation_items.id", index=True, ondelete="CASCADE")
    role: str
    visibility_state: str = VisibilityState.VISIBLE.value
