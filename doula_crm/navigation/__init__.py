"""Role-aware navigation configuration."""

from .models import ItemType, NavigationItem, NavigationRoleVisibility, NavType, VisibilityState

__all__ = ["ItemType", "NavigationItem", "NavigationRoleVisibility", "NavType", "VisibilityState"]
