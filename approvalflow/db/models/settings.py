"""Per-user approval settings.

Installation-wide settings are an ordinary row stored under a reserved
owner id (see ``Settings.installation_settings_owner``).
"""

from sqlalchemy import Column, String, DateTime, JSON, Boolean, Integer

from approvalflow.db.base import Base, utcnow


class ApprovalSettings(Base):
    __tablename__ = "approval_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), unique=True, nullable=False, index=True)

    auto_assign_enabled = Column(Boolean, default=True, nullable=False)
    default_assignees = Column(JSON, nullable=False, default=list)

    # Notification preferences
    notification_frequency = Column(String(20), nullable=False, default="immediately")
    email_notifications_enabled = Column(Boolean, default=True, nullable=False)
    language = Column(String(5), nullable=False, default="en")

    # Routing rules (stored for the owning UI; not evaluated by the resolver)
    department_rules = Column(JSON, nullable=False, default=list)
    module_type_rules = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<ApprovalSettings {self.user_id}>"
