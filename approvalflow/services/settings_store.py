"""Approval settings store.

Per-user settings are created with defaults the first time they are read.
Installation-wide settings live in the same table under a reserved owner id
and are handed to the auto-assigner as an immutable snapshot.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from approvalflow.core.approval.states import Language, NotificationFrequency
from approvalflow.core.config import get_settings
from approvalflow.core.errors import ValidationError
from approvalflow.db.models import ApprovalSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettingsSnapshot:
    """Installation settings as they were when a submission started."""
    auto_assign_enabled: bool = True
    default_assignees: Tuple[str, ...] = field(default_factory=tuple)
    language: str = "en"

    @classmethod
    def from_row(cls, row: ApprovalSettings) -> "SettingsSnapshot":
        return cls(
            auto_assign_enabled=bool(row.auto_assign_enabled),
            default_assignees=tuple(row.default_assignees or ()),
            language=row.language or "en",
        )


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) and v for v in value)


def _is_list(value: Any) -> bool:
    return isinstance(value, list)


def _one_of(enum_cls):
    allowed = {e.value for e in enum_cls}
    return lambda value: isinstance(value, str) and value in allowed


# Updatable field -> validator
SETTINGS_FIELDS = {
    "auto_assign_enabled": _is_bool,
    "default_assignees": _is_str_list,
    "notification_frequency": _one_of(NotificationFrequency),
    "email_notifications_enabled": _is_bool,
    "language": _one_of(Language),
    "department_rules": _is_list,
    "module_type_rules": _is_list,
}


class SettingsStore:
    """Reads and writes ApprovalSettings rows. Commits are left to the caller."""

    def __init__(self, db: Session, installation_owner: Optional[str] = None):
        self.db = db
        self.installation_owner = installation_owner or get_settings().installation_settings_owner

    def find(self, user_id: str) -> Optional[ApprovalSettings]:
        """Existing row or None; never creates one."""
        return self.db.execute(
            select(ApprovalSettings).where(ApprovalSettings.user_id == user_id)
        ).scalar_one_or_none()

    def get(self, user_id: str) -> ApprovalSettings:
        """Settings for ``user_id``, created with defaults on first read."""
        row = self.find(user_id)
        if row is None:
            row = ApprovalSettings(
                user_id=user_id,
                auto_assign_enabled=True,
                default_assignees=[],
                notification_frequency=NotificationFrequency.IMMEDIATELY.value,
                email_notifications_enabled=True,
                language=get_settings().default_language,
                department_rules=[],
                module_type_rules=[],
            )
            self.db.add(row)
            self.db.flush()
            logger.info(f"Created default approval settings for {user_id}")
        return row

    def update(self, user_id: str, changes: Dict[str, Any]) -> ApprovalSettings:
        """
        Merge ``changes`` into the user's settings.

        Raises:
            ValidationError: On an unknown key or an invalid value; nothing is
                written in that case
        """
        for key, value in changes.items():
            validator = SETTINGS_FIELDS.get(key)
            if validator is None:
                raise ValidationError(f"Unknown setting '{key}'", field=key)
            if not validator(value):
                raise ValidationError(f"Invalid value for setting '{key}'", field=key)

        row = self.get(user_id)
        for key, value in changes.items():
            setattr(row, key, list(value) if isinstance(value, list) else value)
        self.db.flush()
        return row

    def get_installation(self) -> ApprovalSettings:
        return self.get(self.installation_owner)

    def update_installation(self, changes: Dict[str, Any]) -> ApprovalSettings:
        return self.update(self.installation_owner, changes)

    def snapshot_installation(self) -> Optional[SettingsSnapshot]:
        """Immutable copy of the installation settings, or None when never configured."""
        row = self.find(self.installation_owner)
        return SettingsSnapshot.from_row(row) if row else None

    def language_for(self, user_id: str, default: str) -> str:
        row = self.find(user_id)
        return row.language if row and row.language else default
