"""RBAC (Role-Based Access Control) for the approval engine.

Maps directory roles to permission sets and checks them.
"""

from .permissions import Permission, Resource, Action, PERMISSION_DEFINITIONS
from .roles import ADMIN, COMPLIANCE_OFFICER, LEGAL, USER, get_role_permissions, normalize_role
from .checker import PermissionChecker, has_permission, require_permission

__all__ = [
    "Permission",
    "Resource",
    "Action",
    "PERMISSION_DEFINITIONS",
    "ADMIN",
    "COMPLIANCE_OFFICER",
    "LEGAL",
    "USER",
    "get_role_permissions",
    "normalize_role",
    "PermissionChecker",
    "has_permission",
    "require_permission",
]
