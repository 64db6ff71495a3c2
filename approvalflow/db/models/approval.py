"""Approval workflow database models.

Stores approval items, their reviewer assignments and the state transition
history. Assignments and history reference the item by workflow_id.
"""

from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Text, Integer, Boolean

from approvalflow.db.base import Base, utcnow


class ApprovalItem(Base):
    """
    One artifact routed through approval.

    The artifact itself lives in its owning module; ``module_id`` is opaque
    to the engine.
    """
    __tablename__ = "approval_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workflow_id = Column(String(32), unique=True, nullable=False, index=True)

    # Module identification
    module_type = Column(String(50), nullable=False, index=True)
    module_id = Column(String(255), nullable=False)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Submitter (display name snapshotted at submission)
    submitted_by = Column(String(128), nullable=True, index=True)
    submitter_name = Column(String(255), nullable=True)
    department = Column(String(255), nullable=True)

    # Workflow state
    priority = Column(String(20), nullable=False, default="medium", index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    due_date = Column(DateTime, nullable=True, index=True)

    details = Column(JSON, nullable=False, default=dict)
    language = Column(String(5), nullable=False, default="en")

    # Timestamps
    submitted_date = Column(DateTime, default=utcnow)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<ApprovalItem {self.workflow_id} {self.module_type}:{self.module_id} [{self.status}]>"


class ApprovalAssignment(Base):
    """
    A reviewer assigned to an item.

    Reassignment adds rows; a user's most recent pending row is the one that
    authorizes a status change.
    """
    __tablename__ = "approval_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workflow_id = Column(String(32), ForeignKey("approval_items.workflow_id", ondelete="CASCADE"),
                         nullable=False, index=True)

    assigned_to = Column(String(128), nullable=False, index=True)
    assigned_by = Column(String(128), nullable=True)  # None when auto-assigned
    assigned_date = Column(DateTime, default=utcnow)
    due_date = Column(DateTime, nullable=True, index=True)
    priority = Column(String(20), nullable=False, default="medium")

    status = Column(String(20), nullable=False, default="pending", index=True)
    completed_date = Column(DateTime, nullable=True)
    comments = Column(Text, nullable=True)
    is_auto_assigned = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<ApprovalAssignment {self.workflow_id} -> {self.assigned_to} [{self.status}]>"


class ApprovalHistory(Base):
    """
    Records every action taken on an item.

    Append-only. Ordering by (action_date, id) reconstructs the lifecycle.
    """
    __tablename__ = "approval_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    history_id = Column(String(32), unique=True, nullable=False)
    workflow_id = Column(String(32), ForeignKey("approval_items.workflow_id", ondelete="CASCADE"),
                         nullable=False, index=True)

    action_type = Column(String(20), nullable=False)
    action_by = Column(String(128), nullable=True)  # None for system actions
    action_by_name = Column(String(255), nullable=True)

    previous_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=True)

    details = Column(JSON, nullable=False, default=dict)
    comments = Column(Text, nullable=True)

    action_date = Column(DateTime, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<ApprovalHistory {self.workflow_id}: {self.previous_status} -> {self.new_status}>"
