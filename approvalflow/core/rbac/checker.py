"""Permission checking utilities."""

from typing import List, Union

from approvalflow.core.errors import ForbiddenError
from .permissions import Permission, is_valid_permission
from .roles import get_role_permissions


class PermissionChecker:
    """Checks if a user has specific permissions based on their role."""

    def __init__(self, user_permissions: list[str]):
        self.permissions = set(user_permissions)

    @classmethod
    def for_role(cls, role) -> "PermissionChecker":
        return cls(get_role_permissions(role))

    def has_permission(self, permission: Union[str, Permission]) -> bool:
        """Check if user has a specific permission."""
        perm_str = str(permission) if isinstance(permission, Permission) else permission

        if perm_str in self.permissions:
            return True

        # Check for wildcard permission on resource
        if ":" in perm_str:
            resource = perm_str.split(":")[0]
            if f"{resource}:*" in self.permissions:
                return True
            # Global admin wildcard
            if "*:*" in self.permissions:
                return True

        return False

    def has_any_permission(self, permissions: List[Union[str, Permission]]) -> bool:
        return any(self.has_permission(p) for p in permissions)


def has_permission(user, permission: Union[str, Permission]) -> bool:
    """
    Check if a directory user has a specific permission.

    Args:
        user: DirectoryUser (or anything with a ``role`` attribute)
        permission: Permission string or Permission object

    Returns:
        True if user has the permission
    """
    if user is None:
        return False
    return PermissionChecker.for_role(getattr(user, "role", None)).has_permission(permission)


def require_permission(user, *permissions: Union[str, Permission]) -> None:
    """
    Raise ForbiddenError unless the user holds any of the given permissions.

    Raises:
        ValueError: A permission string names no known resource action
        ForbiddenError: The user holds none of the permissions
    """
    unknown = [str(p) for p in permissions if not is_valid_permission(str(p))]
    if unknown:
        raise ValueError(f"Unknown permission(s): {', '.join(unknown)}")

    checker = PermissionChecker.for_role(getattr(user, "role", None))
    if not checker.has_any_permission(list(permissions)):
        perm_strs = [str(p) for p in permissions]
        raise ForbiddenError(f"Insufficient permissions. Required: {', '.join(perm_strs)}")
