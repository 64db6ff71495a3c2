"""Notification dispatcher for approval workflow events.

Handles:
- Rendering titles and messages per event and recipient language
- Mapping events to stored notification type and priority
- Writing one in-app notification per recipient

Delivery is best-effort: a recipient whose record cannot be written is
logged and skipped, never raised to the caller.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from jinja2 import Template
from sqlalchemy.orm import Session

from approvalflow.core.approval.states import Priority, PRIORITY_RANK
from approvalflow.core.config import get_settings
from approvalflow.db.models import ApprovalNotification, NotificationType
from approvalflow.db.store import WorkflowStore
from approvalflow.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Workflow events that produce notifications."""
    SUBMISSION = "submission"
    ASSIGNMENT = "assignment"
    UPDATE = "update"
    REMINDER = "reminder"
    COMPLETION = "completion"


# event -> language -> title/message templates
NOTIFICATION_TEMPLATES: Dict[EventType, Dict[str, Dict[str, str]]] = {
    EventType.SUBMISSION: {
        "en": {
            "title": "New Approval Item Submitted",
            "message": "A new {{ module_type | replace('_', ' ') }} has been submitted for approval: {{ name }}",
        },
        "de": {
            "title": "Neues Element zur Genehmigung eingereicht",
            "message": "Ein neues Element ({{ module_type | replace('_', ' ') }}) wurde zur Genehmigung eingereicht: {{ name }}",
        },
    },
    EventType.ASSIGNMENT: {
        "en": {
            "title": "New Approval Assignment",
            "message": "You have been assigned to review: {{ name }}"
                       "{% if due_date %} (due {{ due_date }}){% endif %}",
        },
        "de": {
            "title": "Neue Genehmigungszuweisung",
            "message": "Ihnen wurde die Prüfung zugewiesen: {{ name }}"
                       "{% if due_date %} (fällig am {{ due_date }}){% endif %}",
        },
    },
    EventType.UPDATE: {
        "en": {
            "title": "Approval Status Update",
            "message": "The status of {{ name }} has been updated to {{ status }}",
        },
        "de": {
            "title": "Statusänderung der Genehmigung",
            "message": "Der Status von {{ name }} wurde auf {{ status }} geändert",
        },
    },
    EventType.REMINDER: {
        "en": {
            "title": "Approval Reminder",
            "message": "Reminder: You have an approval task due for {{ name }}"
                       "{% if due_date %} on {{ due_date }}{% endif %}",
        },
        "de": {
            "title": "Genehmigungserinnerung",
            "message": "Erinnerung: Für {{ name }} ist eine Genehmigungsaufgabe fällig"
                       "{% if due_date %} am {{ due_date }}{% endif %}",
        },
    },
    EventType.COMPLETION: {
        "en": {
            "title": "Approval Process Completed",
            "message": "The approval process for {{ name }} has been completed with status: {{ status }}",
        },
        "de": {
            "title": "Genehmigungsprozess abgeschlossen",
            "message": "Der Genehmigungsprozess für {{ name }} wurde mit dem Status {{ status }} abgeschlossen",
        },
    },
}

NOTIFICATION_TYPES: Dict[EventType, NotificationType] = {
    EventType.REMINDER: NotificationType.REMINDER,
    EventType.ASSIGNMENT: NotificationType.ASSIGNMENT,
}


def notification_type_for(event: EventType) -> NotificationType:
    return NOTIFICATION_TYPES.get(event, NotificationType.UPDATE)


def priority_for(event: EventType, requested: Optional[str] = None) -> str:
    """
    Stored priority for an event.

    Assignments keep the requested priority, reminders are raised to at least
    high, everything else is medium.
    """
    try:
        requested_priority = Priority(requested) if requested else Priority.MEDIUM
    except ValueError:
        requested_priority = Priority.MEDIUM

    if event == EventType.ASSIGNMENT:
        return requested_priority.value
    if event == EventType.REMINDER:
        if PRIORITY_RANK[requested_priority] > PRIORITY_RANK[Priority.HIGH]:
            return requested_priority.value
        return Priority.HIGH.value
    return Priority.MEDIUM.value


def render(event: EventType, language: str, context: Dict[str, Any], default_language: str = "en") -> Dict[str, str]:
    """
    Render title and message.

    Unknown languages fall back to ``default_language``, then English. The
    returned ``language`` is the one the text was actually rendered in.
    """
    by_language = NOTIFICATION_TEMPLATES[event]
    for rendered_language in (language, default_language, "en"):
        if rendered_language in by_language:
            break
    templates = by_language[rendered_language]
    return {
        "language": rendered_language,
        "title": Template(templates["title"]).render(**context).strip(),
        "message": Template(templates["message"]).render(**context).strip(),
    }


class NotificationDispatcher:
    """
    Writes notification records for workflow events.

    Commits are left to the caller; each recipient is written inside its own
    savepoint so one failure does not discard the others.
    """

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.store = WorkflowStore(db)
        self.settings_store = SettingsStore(db)

    def emit(
        self,
        workflow_id: str,
        event_type: EventType,
        recipients: Iterable[Optional[str]],
        details: Optional[Dict[str, Any]] = None,
    ) -> List[ApprovalNotification]:
        """
        Create one notification per distinct recipient.

        Args:
            workflow_id: Item the notification refers to
            event_type: Workflow event
            recipients: User ids; empty values are skipped
            details: Template context (name, module_type, status, due_date, priority)

        Returns:
            The notifications that were written
        """
        event = EventType(event_type)
        context = dict(details or {})
        context.setdefault("name", workflow_id)
        context.setdefault("workflow_id", workflow_id)

        created: List[ApprovalNotification] = []
        seen = set()
        for user_id in recipients:
            if not user_id or user_id in seen:
                continue
            seen.add(user_id)

            try:
                with self.db.begin_nested():
                    language = self.settings_store.language_for(user_id, self.settings.default_language)
                    content = render(event, language, context, self.settings.default_language)
                    notification = self.store.add_notification(ApprovalNotification(
                        workflow_id=workflow_id,
                        user_id=user_id,
                        title=content["title"],
                        message=content["message"],
                        type=notification_type_for(event).value,
                        priority=priority_for(event, context.get("priority")),
                        language=content["language"],
                        is_read=False,
                        related_action=event.value,
                    ))
                created.append(notification)
            except Exception:
                logger.exception(f"Failed to write {event.value} notification for {user_id} on {workflow_id}")

        logger.info(f"Emitted {len(created)} {event.value} notification(s) for {workflow_id}")
        return created


class NotificationInbox:
    """Read side of a user's notifications."""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.store = WorkflowStore(db)

    def list(self, user_id: str, unread_only: bool = False, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        page = max(page, 1)
        limit = min(max(limit, 1), self.settings.max_page_size)
        items, total = self.store.list_notifications(
            user_id, unread_only=unread_only, offset=(page - 1) * limit, limit=limit
        )
        return {
            "items": items,
            "total": total,
            "unread_count": self.store.count_unread(user_id),
            "page": page,
            "limit": limit,
        }

    def mark_read(self, user_id: str, notification_ids: Iterable[int]) -> int:
        """Mark notifications read; ids belonging to other users are ignored."""
        updated = self.store.mark_read(user_id, list(notification_ids))
        self.db.commit()
        logger.debug(f"Marked {updated} notification(s) read for {user_id}")
        return updated

    def unread_count(self, user_id: str) -> int:
        return self.store.count_unread(user_id)
