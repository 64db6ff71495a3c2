"""Automatic reviewer assignment on submission."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from approvalflow.core.errors import InvalidTransitionError
from approvalflow.db.models import ApprovalItem, ApprovalAssignment, ApprovalHistory
from approvalflow.db.store import WorkflowStore, new_history_id
from approvalflow.services.notifications import NotificationDispatcher, EventType
from .machine import ApprovalStateMachine
from .resolver import resolve_assignees
from .states import ApprovalTransition, AssignmentStatus

logger = logging.getLogger(__name__)

SYSTEM_ACTOR_NAME = "System"


class AutoAssigner:
    """
    Assigns the first resolved candidate to an open item.

    Everything the assignment writes happens inside one savepoint: either the
    assignment, the status change and the history row all land, or none do
    and the item keeps its status.
    """

    def __init__(self, db: Session, directory, dispatcher: Optional[NotificationDispatcher] = None):
        self.db = db
        self.directory = directory
        self.store = WorkflowStore(db)
        self.dispatcher = dispatcher or NotificationDispatcher(db)

    def try_auto_assign(self, item: ApprovalItem, snapshot, require_enabled: bool = True) -> bool:
        """
        Attempt to auto-assign ``item``.

        Args:
            item: A flushed item in ``pending`` or ``in_review``
            snapshot: Installation SettingsSnapshot, or None when never configured
            require_enabled: Honour the installation's auto-assign switch;
                explicit requests from a reviewer manager pass False

        Returns:
            True if a reviewer was assigned
        """
        if require_enabled and snapshot is not None and not snapshot.auto_assign_enabled:
            logger.info(f"Auto-assignment disabled; {item.workflow_id} stays pending")
            return False

        candidates = resolve_assignees(item.module_type, item.department, snapshot, self.directory)
        if not candidates:
            logger.info(f"No auto-assign candidates for {item.workflow_id}")
            return False

        assignee = candidates[0]
        try:
            with self.db.begin_nested():
                self.store.add_assignment(ApprovalAssignment(
                    workflow_id=item.workflow_id,
                    assigned_to=assignee,
                    assigned_by=None,
                    due_date=item.due_date,
                    priority=item.priority,
                    status=AssignmentStatus.PENDING.value,
                    is_auto_assigned=True,
                ))

                machine = ApprovalStateMachine(item.workflow_id, item.status)
                rule = machine.transition(ApprovalTransition.ASSIGN)
                if rule.from_state != rule.to_state and not self.store.compare_and_set_status(
                    item.workflow_id, rule.from_state.value, rule.to_state.value
                ):
                    raise InvalidTransitionError(
                        f"Item {item.workflow_id} changed while auto-assigning",
                        from_state=rule.from_state.value,
                        transition=rule.transition.value,
                    )

                self.store.append_history(ApprovalHistory(
                    history_id=new_history_id(),
                    workflow_id=item.workflow_id,
                    action_type=rule.history_action.value,
                    action_by=None,
                    action_by_name=SYSTEM_ACTOR_NAME,
                    previous_status=rule.from_state.value,
                    new_status=rule.to_state.value,
                    details={"assigned_to": assignee, "auto_assigned": True},
                ))
        except Exception:
            logger.exception(f"Auto-assignment of {item.workflow_id} to {assignee} failed")
            self.db.expire(item)
            return False

        logger.info(f"Auto-assigned {item.workflow_id} to {assignee}")
        self.dispatcher.emit(item.workflow_id, EventType.ASSIGNMENT, [assignee], {
            "name": item.name,
            "module_type": item.module_type,
            "priority": item.priority,
            "due_date": item.due_date.isoformat() if item.due_date else None,
        })
        return True
