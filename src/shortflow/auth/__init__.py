"""Roles and permissions"""

from .roles import Permission, UserRole, UserStatus, get_allowed_roles, has_permission

__all__ = [
    "Permission",
    "UserRole",
    "UserStatus",
    "get_allowed_roles",
    "has_permission",
]
