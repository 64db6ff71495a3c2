"""Approval workflow states and transitions.

State Machine Diagram:

    ┌──────────┐
    │ PENDING  │ ← Initial state (item submitted)
    └────┬─────┘
         │ assign (manual or automatic)
    ┌────▼──────┐
    │ IN_REVIEW │ ◄─┐ assign (additional reviewer)
    └────┬──────┘ ──┘
         │
         ├─────────────────────┐
         │ approve             │ reject
    ┌────▼─────┐         ┌─────▼────┐
    │ APPROVED │         │ REJECTED │
    └──────────┘         └──────────┘

APPROVED and REJECTED are terminal: no transition leaves them.
"""

from enum import Enum
from typing import Set, Dict, Optional, NamedTuple


class ApprovalState(str, Enum):
    """States an approval item moves through."""

    PENDING = "pending"          # Submitted, nobody assigned yet
    IN_REVIEW = "in_review"      # At least one reviewer assigned
    APPROVED = "approved"        # Terminal
    REJECTED = "rejected"        # Terminal


class ApprovalTransition(str, Enum):
    """Actions that trigger state transitions."""

    ASSIGN = "assign"      # PENDING → IN_REVIEW, IN_REVIEW → IN_REVIEW
    APPROVE = "approve"    # IN_REVIEW → APPROVED
    REJECT = "reject"      # IN_REVIEW → REJECTED


class ModuleType(str, Enum):
    """External subsystems whose artifacts can be routed through approval."""

    RISK_ASSESSMENT = "risk_assessment"
    SYSTEM_REGISTRATION = "system_registration"
    DOCUMENT = "document"
    TRAINING = "training"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


PRIORITY_RANK: Dict[Priority, int] = {
    Priority.LOW: 0,
    Priority.MEDIUM: 1,
    Priority.HIGH: 2,
    Priority.CRITICAL: 3,
}


class AssignmentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class HistoryAction(str, Enum):
    """Action types recorded in the audit trail."""

    SUBMITTED = "submitted"
    ASSIGNED = "assigned"
    APPROVED = "approved"
    REJECTED = "rejected"


class Language(str, Enum):
    ENGLISH = "en"
    GERMAN = "de"
    VIETNAMESE = "vi"


class NotificationFrequency(str, Enum):
    IMMEDIATELY = "immediately"
    DAILY = "daily"
    WEEKLY = "weekly"


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: ApprovalState
    to_state: ApprovalState
    transition: ApprovalTransition
    history_action: HistoryAction


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(ApprovalState.PENDING, ApprovalState.IN_REVIEW, ApprovalTransition.ASSIGN,
                   HistoryAction.ASSIGNED),
    TransitionRule(ApprovalState.IN_REVIEW, ApprovalState.IN_REVIEW, ApprovalTransition.ASSIGN,
                   HistoryAction.ASSIGNED),
    TransitionRule(ApprovalState.IN_REVIEW, ApprovalState.APPROVED, ApprovalTransition.APPROVE,
                   HistoryAction.APPROVED),
    TransitionRule(ApprovalState.IN_REVIEW, ApprovalState.REJECTED, ApprovalTransition.REJECT,
                   HistoryAction.REJECTED),
]

# Build lookup tables for efficient access
VALID_TRANSITIONS: Dict[ApprovalState, Set[ApprovalTransition]] = {}
TRANSITION_TARGETS: Dict[tuple[ApprovalState, ApprovalTransition], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.transition)
    TRANSITION_TARGETS[(rule.from_state, rule.transition)] = rule


TERMINAL_STATES: Set[ApprovalState] = {
    ApprovalState.APPROVED,
    ApprovalState.REJECTED,
}

# States that still need a reviewer's attention
OPEN_STATES: Set[ApprovalState] = {
    ApprovalState.PENDING,
    ApprovalState.IN_REVIEW,
}

# Statuses a reviewer may set through setStatus, mapped to their transition
OUTCOME_TRANSITIONS: Dict[ApprovalState, ApprovalTransition] = {
    ApprovalState.APPROVED: ApprovalTransition.APPROVE,
    ApprovalState.REJECTED: ApprovalTransition.REJECT,
}


def can_transition(from_state: ApprovalState, transition: ApprovalTransition) -> bool:
    """Check if a transition is valid from the given state."""
    return transition in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(from_state: ApprovalState, transition: ApprovalTransition) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, transition))
