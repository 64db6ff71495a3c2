"""Deadline reminder scanner.

Finds pending assignments whose due date falls inside the reminder window and
sends each assignee a reminder. Runs from the Celery beat schedule; every
scan re-sends reminders for assignments still inside the window.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from approvalflow.core.approval.states import TERMINAL_STATES
from approvalflow.core.config import get_settings
from approvalflow.db.base import utcnow, to_naive_utc
from approvalflow.db.store import WorkflowStore
from approvalflow.services.notifications import NotificationDispatcher, EventType

logger = logging.getLogger(__name__)


class ReminderScanner:

    def __init__(self, db: Session, window_hours: Optional[int] = None):
        self.db = db
        self.store = WorkflowStore(db)
        self.dispatcher = NotificationDispatcher(db)
        self.window = timedelta(hours=window_hours or get_settings().reminder_window_hours)

    def scan(self, now: Optional[datetime] = None) -> int:
        """
        Emit one reminder per pending assignment due in (now, now + window].

        Returns:
            Number of reminders written
        """
        now = to_naive_utc(now) or utcnow()
        due = self.store.pending_assignments_due_between(
            now, now + self.window, exclude_statuses=[s.value for s in TERMINAL_STATES]
        )

        sent = 0
        for assignment in due:
            item = self.store.get_item(assignment.workflow_id)
            details = {
                "name": item.name if item else assignment.workflow_id,
                "module_type": item.module_type if item else None,
                "due_date": assignment.due_date.isoformat(),
                "priority": assignment.priority,
            }
            sent += len(self.dispatcher.emit(
                assignment.workflow_id, EventType.REMINDER, [assignment.assigned_to], details
            ))

        self.db.commit()
        logger.info(f"Reminder scan at {now.isoformat()}: {sent} reminder(s) for {len(due)} assignment(s)")
        return sent
