"""Database models for the approval workflow engine."""

from approvalflow.db.models.user import DirectoryUser
from approvalflow.db.models.approval import ApprovalItem, ApprovalAssignment, ApprovalHistory
from approvalflow.db.models.notification import ApprovalNotification, NotificationType
from approvalflow.db.models.settings import ApprovalSettings

__all__ = [
    "DirectoryUser",
    "ApprovalItem",
    "ApprovalAssignment",
    "ApprovalHistory",
    "ApprovalNotification",
    "NotificationType",
    "ApprovalSettings",
]
