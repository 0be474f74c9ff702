"""Organizations, users and roles."""

from .models import ADMIN_ROLES, ROLE_HIERARCHY, Organization, Role, User, hierarchy_level

__all__ = ["ADMIN_ROLES", "ROLE_HIERARCHY", "Organization", "Role", "User", "hierarchy_level"]
