"""Directory user model.

Users are owned by the surrounding platform; the engine only reads them.
"""

from sqlalchemy import Column, String, DateTime, Boolean

from approvalflow.db.base import Base, utcnow


class DirectoryUser(Base):
    __tablename__ = "directory_users"

    uid = Column(String(128), primary_key=True)
    email = Column(String(255), nullable=True, index=True)
    display_name = Column(String(255), nullable=True)
    role = Column(String(100), nullable=True, index=True)  # free text, compared case-insensitively
    department = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow)

    @property
    def name(self) -> str:
        return self.display_name or self.email or self.uid

    def __repr__(self) -> str:
        return f"<DirectoryUser {self.uid} [{self.role}]>"
