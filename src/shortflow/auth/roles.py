"""User roles and permission matrix for ShortFlow.

Roles:
- ADMIN: Full access, assigns shorts, reviews and publishes
- ASSISTANT: Curates rolled shorts (retain / discard)
- VIDEASTE: Edits and uploads the shorts assigned to them

Permission Matrix:
┌──────────────────────┬───────┬───────────┬──────────┐
│ Action               │ ADMIN │ ASSISTANT │ VIDEASTE │
├──────────────────────┼───────┼───────────┼──────────┤
│ Curate (retain/drop) │   ✓   │     ✓     │          │
│ Assign / Reassign    │   ✓   │           │          │
│ Edit & Upload        │       │           │    ✓     │
│ Review (val./rej.)   │   ✓   │           │          │
│ Publish              │   ✓   │           │          │
│ Comment              │   ✓   │     ✓     │    ✓     │
│ Notification settings│   ✓   │           │          │
└──────────────────────┴───────┴───────────┴──────────┘

Edit & Upload is further restricted to the videaste the short is assigned to;
that identity check lives in the state machine, not here.
"""

from enum import Enum
from typing import Dict, FrozenSet, Set


class UserRole(str, Enum):
    """User roles in ShortFlow.

    Values are stored as TEXT in the database and must match exactly.
    """
    ADMIN = "ADMIN"
    ASSISTANT = "ASSISTANT"
    VIDEASTE = "VIDEASTE"


class UserStatus(str, Enum):
    """Account status. BLOCKED users cannot trigger any workflow action."""
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"


class Permission(str, Enum):
    CURATE = "CURATE"
    ASSIGN = "ASSIGN"
    EDIT = "EDIT"
    REVIEW = "REVIEW"
    PUBLISH = "PUBLISH"
    COMMENT = "COMMENT"
    MANAGE_SETTINGS = "MANAGE_SETTINGS"


ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[Permission]] = {
    UserRole.ADMIN: frozenset({
        Permission.CURATE,
        Permission.ASSIGN,
        Permission.REVIEW,
        Permission.PUBLISH,
        Permission.COMMENT,
        Permission.MANAGE_SETTINGS,
    }),
    UserRole.ASSISTANT: frozenset({Permission.CURATE, Permission.COMMENT}),
    UserRole.VIDEASTE: frozenset({Permission.EDIT, Permission.COMMENT}),
}


def has_permission(user_role: UserRole, permission: Permission) -> bool:
    """Check if a role grants a permission.

    Examples:
        >>> has_permission(UserRole.ADMIN, Permission.ASSIGN)
        True
        >>> has_permission(UserRole.ASSISTANT, Permission.ASSIGN)
        False
        >>> has_permission(UserRole.ADMIN, Permission.EDIT)
        False
    """
    return permission in ROLE_PERMISSIONS.get(user_role, frozenset())


def get_allowed_roles(permission: Permission) -> Set[UserRole]:
    """Get all roles that hold a permission.

    Example:
        >>> get_allowed_roles(Permission.CURATE) == {UserRole.ADMIN, UserRole.ASSISTANT}
        True
    """
    return {role for role, permissions in ROLE_PERMISSIONS.items() if permission in permissions}
