"""Factory functions for creating test database records.

Each factory creates a model instance, adds it to the session, and flushes
so that database-generated fields (id, created_at, etc.) are populated.
All fields have sensible defaults but can be overridden via keyword arguments.

Usage::

    from tests.factories import create_user, create_item

    def test_something(db_session):
        reviewer = create_user(db_session, role="legal")
        item = create_item(db_session, module_type="document")
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from approvalflow.db.base import utcnow
from approvalflow.db.models import (
    ApprovalAssignment,
    ApprovalItem,
    ApprovalSettings,
    DirectoryUser,
)
from approvalflow.db.store import new_workflow_id


_counter = 0


def _next_id() -> int:
    """Return a monotonically increasing integer for unique default values."""
    global _counter
    _counter += 1
    return _counter


# ---------------------------------------------------------------------------
# Directory users
# ---------------------------------------------------------------------------


def create_user(
    session: Session,
    *,
    uid: Optional[str] = None,
    role: str = "user",
    display_name: Optional[str] = None,
    email: Optional[str] = None,
    department: Optional[str] = None,
    is_active: bool = True,
) -> DirectoryUser:
    n = _next_id()
    user = DirectoryUser(
        uid=uid or f"user-{n:04d}",
        role=role,
        display_name=display_name or f"Test User {n}",
        email=email or f"user{n}@example.com",
        department=department,
        is_active=is_active,
    )
    session.add(user)
    session.flush()
    return user


# ---------------------------------------------------------------------------
# Approval items and assignments
# ---------------------------------------------------------------------------


def create_item(
    session: Session,
    *,
    module_type: str = "risk_assessment",
    module_id: Optional[str] = None,
    name: Optional[str] = None,
    status: str = "pending",
    priority: str = "medium",
    submitted_by: Optional[str] = None,
    due_date: Optional[datetime] = None,
    created_at: Optional[datetime] = None,
    updated_at: Optional[datetime] = None,
) -> ApprovalItem:
    n = _next_id()
    now = utcnow()
    item = ApprovalItem(
        workflow_id=new_workflow_id(module_type),
        module_type=module_type,
        module_id=module_id or f"module-{n}",
        name=name or f"Test Item {n}",
        status=status,
        priority=priority,
        submitted_by=submitted_by,
        due_date=due_date,
        details={},
        language="en",
        submitted_date=created_at or now,
        created_at=created_at or now,
        updated_at=updated_at or created_at or now,
    )
    session.add(item)
    session.flush()
    return item


def create_assignment(
    session: Session,
    item: ApprovalItem,
    assigned_to: str,
    *,
    assigned_by: Optional[str] = None,
    due_date: Optional[datetime] = None,
    priority: Optional[str] = None,
    status: str = "pending",
) -> ApprovalAssignment:
    assignment = ApprovalAssignment(
        workflow_id=item.workflow_id,
        assigned_to=assigned_to,
        assigned_by=assigned_by,
        due_date=due_date,
        priority=priority or item.priority,
        status=status,
        is_auto_assigned=assigned_by is None,
    )
    session.add(assignment)
    session.flush()
    return assignment


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def create_settings(
    session: Session,
    user_id: str,
    *,
    auto_assign_enabled: bool = True,
    default_assignees: Optional[List[str]] = None,
    language: str = "en",
) -> ApprovalSettings:
    row = ApprovalSettings(
        user_id=user_id,
        auto_assign_enabled=auto_assign_enabled,
        default_assignees=default_assignees or [],
        notification_frequency="immediately",
        email_notifications_enabled=True,
        language=language,
        department_rules=[],
        module_type_rules=[],
    )
    session.add(row)
    session.flush()
    return row


def create_installation_settings(session: Session, **kwargs) -> ApprovalSettings:
    return create_settings(session, "installation", **kwargs)
