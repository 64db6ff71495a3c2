"""Approval workflow module.

Implements the approval state machine shared by every module type. The
resolver, auto-assigner, module sync registry and workflow service live in
the sibling modules of this package.
"""

from .states import (
    ApprovalState,
    ApprovalTransition,
    ModuleType,
    Priority,
    VALID_TRANSITIONS,
    TERMINAL_STATES,
)
from .machine import ApprovalStateMachine

__all__ = [
    "ApprovalState",
    "ApprovalTransition",
    "ModuleType",
    "Priority",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "ApprovalStateMachine",
]
