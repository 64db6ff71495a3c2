"""Permission model for the approval engine.

Permission string format: "resource:action"
Examples:
  - approvals:approve
  - assignments:create
  - installation_settings:update
"""

from enum import Enum
from typing import NamedTuple, FrozenSet


class Resource(str, Enum):
    """Resources that can be protected by permissions."""

    APPROVALS = "approvals"                          # Approval items and their status
    ASSIGNMENTS = "assignments"                      # Reviewer assignments
    NOTIFICATIONS = "notifications"                  # Own in-app notifications
    SETTINGS = "settings"                            # Own approval settings
    INSTALLATION_SETTINGS = "installation_settings"  # Installation-wide defaults
    STATISTICS = "statistics"                        # Dashboard counts


class Action(str, Enum):
    """Actions that can be performed on resources."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    LIST = "list"

    APPROVE = "approve"
    REJECT = "reject"


class Permission(NamedTuple):
    """A permission is a combination of resource and action."""
    resource: Resource
    action: Action

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.action.value}"


PERMISSION_MATRIX: dict[Resource, FrozenSet[Action]] = {
    Resource.APPROVALS: frozenset([
        Action.CREATE, Action.READ, Action.LIST, Action.APPROVE, Action.REJECT,
    ]),
    Resource.ASSIGNMENTS: frozenset([
        Action.CREATE, Action.READ, Action.LIST,
    ]),
    Resource.NOTIFICATIONS: frozenset([
        Action.READ, Action.LIST, Action.UPDATE,
    ]),
    Resource.SETTINGS: frozenset([
        Action.READ, Action.UPDATE,
    ]),
    Resource.INSTALLATION_SETTINGS: frozenset([
        Action.READ, Action.UPDATE,
    ]),
    Resource.STATISTICS: frozenset([
        Action.READ,
    ]),
}


def _generate_permission_definitions() -> dict[str, Permission]:
    permissions = {}
    for resource, actions in PERMISSION_MATRIX.items():
        for action in actions:
            perm = Permission(resource, action)
            permissions[str(perm)] = perm
    return permissions


# All valid permissions as a dictionary: "resource:action" -> Permission
PERMISSION_DEFINITIONS = _generate_permission_definitions()


def is_valid_permission(perm_str: str) -> bool:
    """Check if a permission string is valid."""
    return perm_str in PERMISSION_DEFINITIONS
