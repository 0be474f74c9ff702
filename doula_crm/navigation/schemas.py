"""Pydantic schemas for the navigation API."""

from typing import Optional

from pydantic import BaseModel, Field

from doula_crm.organizations.models import Role

from .models import ItemType, NavType, VisibilityState


class NavItemRead(BaseModel):
    id: str
    item_type: str
    item_key: str
    display_name: str
    icon_name: Optional[str]
    href: Optional[str]
    nav_type: str
    sort_order: int
    object_definition_id: Optional[str]
    is_required: bool
    is_active: bool

    model_config = {"from_attributes": True}


class NavItemAdmin(NavItemRead):
    role_visibility: dict[str, str] = Field(default_factory=dict)


class NavigationConfig(BaseModel):
    """Items for the caller's role, grouped by where they render."""

    role: str
    primary_tabs: list[NavItemRead] = Field(default_factory=list)
    tools_menu: list[NavItemRead] = Field(default_factory=list)
    admin_menu: list[NavItemRead] = Field(default_factory=list)
    available: list[NavItemRead] = Field(default_factory=list)


class VisibilityUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    role: Role
    visibility_state: VisibilityState


class BulkVisibilityItem(VisibilityUpdate):
    navigation_item_id: str


class BulkVisibilityUpdate(BaseModel):
    updates: list[BulkVisibilityItem] = Field(min_length=1)


class DisplayUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1)
    icon_name: Optional[str] = None
    href: Optional[str] = None
    is_active: Optional[bool] = None


class NavReorder(BaseModel):
    model_config = {"use_enum_values": True}

    nav_type: NavType
    item_ids: list[str] = Field(min_length=1)


class NavItemCreate(BaseModel):
    model_config = {"use_enum_values": True}

    item_type: ItemType = ItemType.EXTERNAL_LINK
    item_key: str = Field(min_length=1, pattern="^[a-z0-9_-]+$")
    display_name: str = Field(min_length=1)
    icon_name: Optional[str] = None
    href: Optional[str] = None
    nav_type: NavType = NavType.TOOLS_MENU
    object_definition_id: Optional[str] = None
