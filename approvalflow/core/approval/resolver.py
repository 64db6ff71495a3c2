"""Assignee resolution.

Picks the reviewers for a newly submitted item. First match wins:

1. installation default assignees, verbatim
2. up to two active users holding the role for the module type
3. up to two active admins
4. nobody
"""

import logging
from typing import Dict, List, Optional

from approvalflow.core.rbac.roles import ADMIN, COMPLIANCE_OFFICER, LEGAL
from .states import ModuleType

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 2

ROLE_FOR_MODULE: Dict[str, str] = {
    ModuleType.RISK_ASSESSMENT.value: COMPLIANCE_OFFICER,
    ModuleType.SYSTEM_REGISTRATION.value: ADMIN,
    ModuleType.DOCUMENT.value: LEGAL,
    ModuleType.TRAINING.value: ADMIN,
}

DEFAULT_ROLE = COMPLIANCE_OFFICER


def role_for_module(module_type: str) -> str:
    return ROLE_FOR_MODULE.get(module_type, DEFAULT_ROLE)


def resolve_assignees(module_type: str, department: Optional[str], snapshot, directory) -> List[str]:
    """
    Return the ordered candidate reviewer ids for an item.

    Args:
        module_type: Item module type; unknown types route to compliance officers
        department: Submitting department (currently informational only)
        snapshot: Installation SettingsSnapshot or None
        directory: Object with ``find_by_role(role, limit)`` and ``list_admins(limit)``

    Returns:
        Candidate user ids, possibly empty
    """
    if snapshot is not None and snapshot.default_assignees:
        logger.debug(f"Using installation default assignees for {module_type}")
        return list(snapshot.default_assignees)

    role = role_for_module(module_type)
    candidates = [u.uid for u in directory.find_by_role(role, limit=MAX_CANDIDATES)]
    if candidates:
        logger.debug(f"Resolved {len(candidates)} {role} reviewer(s) for {module_type} (department={department})")
        return candidates

    admins = [u.uid for u in directory.list_admins(limit=MAX_CANDIDATES)]
    if admins:
        logger.info(f"No active {role} for {module_type}; falling back to admins")
    else:
        logger.warning(f"No reviewers available for {module_type}")
    return admins
