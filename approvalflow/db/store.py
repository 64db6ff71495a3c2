"""Workflow store.

Every read and write of approval items, assignments, history and
notifications goes through ``WorkflowStore``. Writes are single-row inserts or
updates on the caller's session; committing is the caller's job.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, update, func, case
from sqlalchemy.orm import Session

from approvalflow.core.errors import ValidationError
from approvalflow.db.base import utcnow
from approvalflow.db.models import (
    ApprovalItem,
    ApprovalAssignment,
    ApprovalHistory,
    ApprovalNotification,
)

logger = logging.getLogger(__name__)


SORTABLE_COLUMNS = {
    "created_at": ApprovalItem.created_at,
    "updated_at": ApprovalItem.updated_at,
    "due_date": ApprovalItem.due_date,
    "name": ApprovalItem.name,
    "status": ApprovalItem.status,
    # Ranked rather than alphabetical
    "priority": case(
        {"low": 0, "medium": 1, "high": 2, "critical": 3},
        value=ApprovalItem.priority,
        else_=-1,
    ),
}

SORT_ORDERS = ("asc", "desc")


def new_workflow_id(module_type: str) -> str:
    """WF-<first three letters of the module type>-<8 hex chars>."""
    return f"WF-{module_type[:3]}-{uuid.uuid4().hex[:8]}"


def new_history_id() -> str:
    return f"HIST-{uuid.uuid4().hex[:8]}"


class WorkflowStore:
    """Persistence gateway for the workflow entities."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(self, item: ApprovalItem) -> ApprovalItem:
        self.db.add(item)
        self.db.flush()
        return item

    def get_item(self, workflow_id: str, for_update: bool = False) -> Optional[ApprovalItem]:
        """
        Fetch an item by workflow id.

        With ``for_update`` the row is locked (where the database supports it)
        and the in-session copy is refreshed from the database.
        """
        stmt = select(ApprovalItem).where(ApprovalItem.workflow_id == workflow_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def compare_and_set_status(self, workflow_id: str, expected: str, new: str) -> bool:
        """
        Move an item from ``expected`` to ``new`` status.

        Returns False, changing nothing, when the stored status is no longer
        ``expected``.
        """
        result = self.db.execute(
            update(ApprovalItem)
            .where(ApprovalItem.workflow_id == workflow_id)
            .where(ApprovalItem.status == expected)
            .values(status=new, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        changed = result.rowcount == 1
        if not changed:
            logger.info(f"Status compare-and-set lost for {workflow_id}: expected {expected}")
        return changed

    def _filtered(self, stmt, status=None, module_type=None, priority=None, search=None):
        if status:
            stmt = stmt.where(ApprovalItem.status == status)
        if module_type:
            stmt = stmt.where(ApprovalItem.module_type == module_type)
        if priority:
            stmt = stmt.where(ApprovalItem.priority == priority)
        if search:
            stmt = stmt.where(func.lower(ApprovalItem.name).contains(search.lower(), autoescape=True))
        return stmt

    def list_items(
        self,
        status: Optional[str] = None,
        module_type: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ApprovalItem], int]:
        """List items with filters, sorting and pagination. Returns (items, total)."""
        if sort_by not in SORTABLE_COLUMNS:
            raise ValidationError(f"Cannot sort by '{sort_by}'", field="sort_by")
        if sort_order not in SORT_ORDERS:
            raise ValidationError(f"Sort order must be one of {', '.join(SORT_ORDERS)}", field="sort_order")

        filters = dict(status=status, module_type=module_type, priority=priority, search=search)

        total = self.db.execute(
            self._filtered(select(func.count()).select_from(ApprovalItem), **filters)
        ).scalar_one()

        column = SORTABLE_COLUMNS[sort_by]
        ordering = column.asc() if sort_order == "asc" else column.desc()
        stmt = (
            self._filtered(select(ApprovalItem), **filters)
            .order_by(ordering, ApprovalItem.id)
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars()), total

    def count_items_by(self, column_name: str) -> Dict[str, int]:
        column = getattr(ApprovalItem, column_name)
        rows = self.db.execute(select(column, func.count()).group_by(column)).all()
        return {value: count for value, count in rows}

    def count_items_created_since(self, since: datetime) -> int:
        return self.db.execute(
            select(func.count()).select_from(ApprovalItem).where(ApprovalItem.created_at >= since)
        ).scalar_one()

    def count_items_due_between(self, start: datetime, end: datetime, statuses: Sequence[str]) -> int:
        return self.db.execute(
            select(func.count())
            .select_from(ApprovalItem)
            .where(ApprovalItem.due_date.is_not(None))
            .where(ApprovalItem.due_date >= start)
            .where(ApprovalItem.due_date <= end)
            .where(ApprovalItem.status.in_(list(statuses)))
        ).scalar_one()

    def items_with_status(self, status: str) -> List[ApprovalItem]:
        return list(self.db.execute(select(ApprovalItem).where(ApprovalItem.status == status)).scalars())

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def add_assignment(self, assignment: ApprovalAssignment) -> ApprovalAssignment:
        self.db.add(assignment)
        self.db.flush()
        return assignment

    def list_assignments(self, workflow_id: str) -> List[ApprovalAssignment]:
        stmt = (
            select(ApprovalAssignment)
            .where(ApprovalAssignment.workflow_id == workflow_id)
            .order_by(ApprovalAssignment.id)
        )
        return list(self.db.execute(stmt).scalars())

    def active_assignment(self, workflow_id: str, user_id: str) -> Optional[ApprovalAssignment]:
        """The user's most recent pending assignment on the item, if any."""
        stmt = (
            select(ApprovalAssignment)
            .where(ApprovalAssignment.workflow_id == workflow_id)
            .where(ApprovalAssignment.assigned_to == user_id)
            .where(ApprovalAssignment.status == "pending")
            .order_by(ApprovalAssignment.assigned_date.desc(), ApprovalAssignment.id.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def assignee_ids(self, workflow_id: str) -> List[str]:
        """Everyone who ever held an assignment on the item, in first-assigned order."""
        seen: List[str] = []
        for assignment in self.list_assignments(workflow_id):
            if assignment.assigned_to not in seen:
                seen.append(assignment.assigned_to)
        return seen

    def complete_assignment(self, assignment: ApprovalAssignment, comments: Optional[str] = None,
                            completed_at: Optional[datetime] = None) -> ApprovalAssignment:
        assignment.status = "completed"
        assignment.completed_date = completed_at or utcnow()
        if comments is not None:
            assignment.comments = comments
        self.db.flush()
        return assignment

    def pending_assignments_due_between(self, start: datetime, end: datetime,
                                        exclude_statuses: Sequence[str]) -> List[ApprovalAssignment]:
        """Pending assignments with start < due_date <= end on items not in ``exclude_statuses``."""
        stmt = (
            select(ApprovalAssignment)
            .join(ApprovalItem, ApprovalItem.workflow_id == ApprovalAssignment.workflow_id)
            .where(ApprovalAssignment.status == "pending")
            .where(ApprovalAssignment.due_date.is_not(None))
            .where(ApprovalAssignment.due_date > start)
            .where(ApprovalAssignment.due_date <= end)
            .where(ApprovalItem.status.not_in(list(exclude_statuses)))
            .order_by(ApprovalAssignment.due_date, ApprovalAssignment.id)
        )
        return list(self.db.execute(stmt).scalars())

    # ------------------------------------------------------------------
    # History (append-only)
    # ------------------------------------------------------------------

    def append_history(self, entry: ApprovalHistory) -> ApprovalHistory:
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_history(self, workflow_id: str) -> List[ApprovalHistory]:
        stmt = (
            select(ApprovalHistory)
            .where(ApprovalHistory.workflow_id == workflow_id)
            .order_by(ApprovalHistory.action_date, ApprovalHistory.id)
        )
        return list(self.db.execute(stmt).scalars())

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def add_notification(self, notification: ApprovalNotification) -> ApprovalNotification:
        self.db.add(notification)
        self.db.flush()
        return notification

    def list_notifications(self, user_id: str, unread_only: bool = False,
                           offset: int = 0, limit: int = 20) -> Tuple[List[ApprovalNotification], int]:
        base = select(ApprovalNotification).where(ApprovalNotification.user_id == user_id)
        count_stmt = select(func.count()).select_from(ApprovalNotification).where(
            ApprovalNotification.user_id == user_id
        )
        if unread_only:
            base = base.where(ApprovalNotification.is_read.is_(False))
            count_stmt = count_stmt.where(ApprovalNotification.is_read.is_(False))

        total = self.db.execute(count_stmt).scalar_one()
        stmt = base.order_by(ApprovalNotification.created_at.desc(), ApprovalNotification.id.desc())
        items = list(self.db.execute(stmt.offset(offset).limit(limit)).scalars())
        return items, total

    def count_unread(self, user_id: str) -> int:
        return self.db.execute(
            select(func.count())
            .select_from(ApprovalNotification)
            .where(ApprovalNotification.user_id == user_id)
            .where(ApprovalNotification.is_read.is_(False))
        ).scalar_one()

    def mark_read(self, user_id: str, notification_ids: Sequence[int]) -> int:
        """Mark the user's own unread notifications read. Returns rows changed."""
        if not notification_ids:
            return 0
        result = self.db.execute(
            update(ApprovalNotification)
            .where(ApprovalNotification.id.in_(list(notification_ids)))
            .where(ApprovalNotification.user_id == user_id)
            .where(ApprovalNotification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount
