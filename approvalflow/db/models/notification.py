"""In-app notification records."""

from enum import Enum
from sqlalchemy import Column, String, DateTime, Boolean, Text, Integer

from approvalflow.db.base import Base, utcnow


class NotificationType(str, Enum):
    """Stored notification categories."""
    ASSIGNMENT = "assignment"
    REMINDER = "reminder"
    UPDATE = "update"


class ApprovalNotification(Base):
    """
    One notification addressed to one user.

    Created by the dispatcher only; no uniqueness constraint, so a reminder
    can be delivered more than once.
    """
    __tablename__ = "approval_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workflow_id = Column(String(32), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default=NotificationType.UPDATE.value)
    priority = Column(String(20), nullable=False, default="medium")
    language = Column(String(5), nullable=False, default="en")

    is_read = Column(Boolean, default=False, nullable=False, index=True)
    related_action = Column(String(50), nullable=True)  # event that produced it

    created_at = Column(DateTime, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<ApprovalNotification {self.type} -> {self.user_id} ({self.workflow_id})>"
