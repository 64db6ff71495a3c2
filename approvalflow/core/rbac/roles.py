"""Role definitions for the approval engine.

Directory roles are free text; they are matched case-insensitively against
the table below. Unknown roles get the plain user permission set.

1. Admin - Full access, including installation settings
2. Compliance Officer - Decides and assigns any item
3. Legal - Reviews documents it is assigned to
4. User - Submits items and reviews what it is assigned to
"""

from typing import Dict, List, Optional
from .permissions import Resource, Action, Permission

ADMIN = "admin"
COMPLIANCE_OFFICER = "compliance_officer"
LEGAL = "legal"
USER = "user"


def _build_permissions(*perms: tuple) -> List[str]:
    """Build permission strings from (Resource, Action) tuples."""
    return [str(Permission(r, a)) for r, a in perms]


# Admin: Full access to everything
ADMIN_PERMISSIONS = [
    "*:*"
]

# Baseline for every directory user: submit, browse, own inbox and settings.
# Deciding an item additionally requires a pending assignment on it.
USER_PERMISSIONS = _build_permissions(
    (Resource.APPROVALS, Action.CREATE),
    (Resource.APPROVALS, Action.READ),
    (Resource.APPROVALS, Action.LIST),
    (Resource.ASSIGNMENTS, Action.READ),
    (Resource.ASSIGNMENTS, Action.LIST),
    (Resource.NOTIFICATIONS, Action.READ),
    (Resource.NOTIFICATIONS, Action.LIST),
    (Resource.NOTIFICATIONS, Action.UPDATE),
    (Resource.SETTINGS, Action.READ),
    (Resource.SETTINGS, Action.UPDATE),
    (Resource.STATISTICS, Action.READ),
)

LEGAL_PERMISSIONS = list(USER_PERMISSIONS)

# Compliance officer: decide and assign any item
COMPLIANCE_OFFICER_PERMISSIONS = USER_PERMISSIONS + _build_permissions(
    (Resource.APPROVALS, Action.APPROVE),
    (Resource.APPROVALS, Action.REJECT),
    (Resource.ASSIGNMENTS, Action.CREATE),
)


DEFAULT_ROLES: Dict[str, dict] = {
    ADMIN: {
        "name": "Admin",
        "description": "Full system access with all permissions",
        "permissions": ADMIN_PERMISSIONS,
    },
    COMPLIANCE_OFFICER: {
        "name": "Compliance Officer",
        "description": "Approves, rejects and assigns any approval item",
        "permissions": COMPLIANCE_OFFICER_PERMISSIONS,
    },
    LEGAL: {
        "name": "Legal",
        "description": "Reviews documents routed to the legal team",
        "permissions": LEGAL_PERMISSIONS,
    },
    USER: {
        "name": "User",
        "description": "Submits items and reviews assigned ones",
        "permissions": USER_PERMISSIONS,
    },
}


def normalize_role(role: Optional[str]) -> str:
    """Lower-case a directory role; empty roles become the plain user role."""
    return (role or USER).strip().lower() or USER


def get_role_permissions(role: Optional[str]) -> List[str]:
    """Get the permission list for a (case-insensitive) role name."""
    role_def = DEFAULT_ROLES.get(normalize_role(role), DEFAULT_ROLES[USER])
    return role_def["permissions"]
