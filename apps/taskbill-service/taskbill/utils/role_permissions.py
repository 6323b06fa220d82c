"""
Role-based permission utilities for application users.

Each user carries exactly one role. Routes ask for a named permission
(`read`, `write`, `manage_billing`, ...) rather than checking role names, so
the mapping below is the only place that decides what a role may do.
"""

from typing import Dict, Set, FrozenSet
from enum import Enum


ROLE_USER = "user"
ROLE_MANAGER = "manager"
ROLE_ADMIN = "admin"
ROLE_SUPERUSER = "superuser"

PERM_READ = "read"
PERM_WRITE = "write"
PERM_MANAGE_BILLING = "manage_billing"
PERM_MANAGE_API_KEYS = "manage_api_keys"
PERM_MANAGE_USERS = "manage_users"
PERM_CLEANUP = "cleanup"

ALL_PERMISSIONS: FrozenSet[str] = frozenset({
    PERM_READ,
    PERM_WRITE,
    PERM_MANAGE_BILLING,
    PERM_MANAGE_API_KEYS,
    PERM_MANAGE_USERS,
    PERM_CLEANUP,
})

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    ROLE_USER: frozenset({PERM_READ, PERM_WRITE}),
    ROLE_MANAGER: frozenset({PERM_READ, PERM_WRITE, PERM_MANAGE_BILLING}),
    ROLE_ADMIN: frozenset({PERM_READ, PERM_WRITE, PERM_MANAGE_BILLING, PERM_MANAGE_USERS, PERM_CLEANUP}),
    ROLE_SUPERUSER: ALL_PERMISSIONS,
}

ALLOWED_ROLES = set(ROLE_PERMISSIONS.keys())


class RoleEnum(str, Enum):
    """Enum for user roles used in schemas and validation."""
    user = ROLE_USER
    manager = ROLE_MANAGER
    admin = ROLE_ADMIN
    superuser = ROLE_SUPERUSER


def get_role_permissions(role: str) -> Dict[str, bool]:
    """
    Get the permission flags for a given role.

    Args:
        role: The role name (user, manager, admin, superuser)

    Returns:
        Dict mapping every known permission to True/False

    Raises:
        ValueError: If role is not recognized
    """
    if role not in ROLE_PERMISSIONS:
        raise ValueError(f"Unknown role: {role}. Allowed roles: {sorted(ROLE_PERMISSIONS.keys())}")

    granted = ROLE_PERMISSIONS[role]
    return {perm: perm in granted for perm in sorted(ALL_PERMISSIONS)}


def role_has_permission(role: str, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def get_allowed_roles() -> Set[str]:
    """Get the set of all allowed roles."""
    return ALLOWED_ROLES.copy()


def validate_role(role: str) -> None:
    """
    Validate that a role is allowed.

    Raises:
        ValueError: If role is not allowed
    """
    if role not in ALLOWED_ROLES:
        raise ValueError(f"Invalid role '{role}'. Allowed roles: {sorted(ALLOWED_ROLES)}")
