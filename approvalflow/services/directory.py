"""Directory gateway.

Read-only lookups of platform users by id or role.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from approvalflow.core.rbac.roles import ADMIN
from approvalflow.db.models import DirectoryUser

logger = logging.getLogger(__name__)


class SqlDirectory:
    """Directory backed by the ``directory_users`` table."""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, uid: Optional[str]) -> Optional[DirectoryUser]:
        if not uid:
            return None
        return self.db.get(DirectoryUser, uid)

    def find_by_role(self, role: str, limit: Optional[int] = None) -> List[DirectoryUser]:
        """Active users holding ``role`` (case-insensitive), ordered by uid."""
        stmt = (
            select(DirectoryUser)
            .where(func.lower(DirectoryUser.role) == role.lower())
            .where(DirectoryUser.is_active.is_(True))
            .order_by(DirectoryUser.uid)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars())

    def list_admins(self, limit: Optional[int] = None) -> List[DirectoryUser]:
        return self.find_by_role(ADMIN, limit=limit)

    def display_name(self, uid: Optional[str]) -> Optional[str]:
        user = self.get_user(uid)
        return user.name if user else None
