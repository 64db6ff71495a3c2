"""Approval service for managing approval workflows.

Provides the high-level API over the approval state machine: submission,
manual assignment and status changes, with persistence, audit history,
notifications and propagation of outcomes to the owning modules.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from approvalflow.core.config import get_settings
from approvalflow.core.errors import (
    ApprovalError,
    ValidationError,
    NotFoundError,
    ForbiddenError,
    InvalidTransitionError,
    UnsupportedModuleTypeError,
)
from approvalflow.core.rbac import Permission, Resource, Action, has_permission, require_permission
from approvalflow.db.base import utcnow, to_naive_utc
from approvalflow.db.models import ApprovalItem, ApprovalAssignment, ApprovalHistory
from approvalflow.db.store import WorkflowStore, new_workflow_id, new_history_id
from approvalflow.services.directory import SqlDirectory
from approvalflow.services.notifications import NotificationDispatcher, EventType
from approvalflow.services.settings_store import SettingsStore
from .auto_assign import AutoAssigner
from .machine import ApprovalStateMachine
from .module_sync import ModuleStatusRegistry, build_registry
from .states import (
    ApprovalState,
    ApprovalTransition,
    AssignmentStatus,
    HistoryAction,
    Language,
    ModuleType,
    Priority,
    OPEN_STATES,
    OUTCOME_TRANSITIONS,
)

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255
MAX_COMMENT_LENGTH = 2000

RECENT_SUBMISSION_DAYS = 30
DUE_SOON_HOURS = 48


class ApprovalService:
    """
    High-level service for approval workflows.

    Handles:
    - Submitting items and auto-assigning a reviewer
    - Manual assignment of additional reviewers
    - Approving and rejecting with authorization and audit history
    - Listing, detail and statistics queries
    """

    def __init__(
        self,
        db: Session,
        directory=None,
        registry: Optional[ModuleStatusRegistry] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings_store: Optional[SettingsStore] = None,
    ):
        """
        Initialize the approval service.

        Args:
            db: Database session
            directory: User directory; defaults to the SQL-backed one
            registry: Module status handlers; defaults to the configured endpoints
            dispatcher: Notification dispatcher
            settings_store: Approval settings store
        """
        self.db = db
        self.settings = get_settings()
        self.store = WorkflowStore(db)
        self.directory = directory or SqlDirectory(db)
        self.registry = registry if registry is not None else build_registry(self.settings)
        self.dispatcher = dispatcher or NotificationDispatcher(db)
        self.settings_store = settings_store or SettingsStore(db)
        self.auto_assigner = AutoAssigner(db, self.directory, self.dispatcher)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, fields: Dict[str, Any], submitter_id: Optional[str] = None) -> Tuple[ApprovalItem, bool]:
        """
        Submit an item for approval.

        Args:
            fields: name, module_type, module_id and optionally description,
                department, priority, due_date, details, language
            submitter_id: Submitting user, None for system submissions

        Returns:
            (item, auto_assigned)

        Raises:
            ValidationError: Missing or invalid fields
        """
        values = self._validate_submission(fields)

        # Installation settings are read once; later edits do not affect this submission
        snapshot = self.settings_store.snapshot_installation()

        submitter_name = self.directory.display_name(submitter_id) if submitter_id else None
        now = utcnow()
        item = self.store.add_item(ApprovalItem(
            workflow_id=new_workflow_id(values["module_type"]),
            status=ApprovalState.PENDING.value,
            submitted_by=submitter_id,
            submitter_name=submitter_name,
            submitted_date=now,
            created_at=now,
            updated_at=now,
            **values,
        ))

        self.store.append_history(ApprovalHistory(
            history_id=new_history_id(),
            workflow_id=item.workflow_id,
            action_type=HistoryAction.SUBMITTED.value,
            action_by=submitter_id,
            action_by_name=submitter_name,
            previous_status=None,
            new_status=ApprovalState.PENDING.value,
            details={"module_type": item.module_type, "module_id": item.module_id},
            action_date=now,
        ))

        auto_assigned = self.auto_assigner.try_auto_assign(item, snapshot)
        self.db.commit()
        self.db.refresh(item)

        logger.info(
            f"Submitted {item.workflow_id} ({item.module_type}:{item.module_id}) "
            f"by {submitter_id or 'system'}; auto_assigned={auto_assigned}"
        )

        admins = [u.uid for u in self.directory.list_admins()]
        self.dispatcher.emit(item.workflow_id, EventType.SUBMISSION, admins, self._details(item))
        self.db.commit()

        return item, auto_assigned

    def _validate_submission(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        name = (fields.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required", field="name")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"name must be at most {MAX_NAME_LENGTH} characters", field="name")

        module_id = fields.get("module_id")
        module_id = str(module_id).strip() if module_id is not None else ""
        if not module_id:
            raise ValidationError("module_id is required", field="module_id")

        module_type = fields.get("module_type")
        if module_type not in {m.value for m in ModuleType}:
            raise ValidationError(f"Unknown module type '{module_type}'", field="module_type")

        priority = fields.get("priority") or Priority.MEDIUM.value
        if priority not in {p.value for p in Priority}:
            raise ValidationError(f"Unknown priority '{priority}'", field="priority")

        language = fields.get("language") or self.settings.default_language
        if language not in {lang.value for lang in Language}:
            raise ValidationError(f"Unsupported language '{language}'", field="language")

        due_date = fields.get("due_date")
        if due_date is not None and not isinstance(due_date, datetime):
            raise ValidationError("due_date must be a datetime", field="due_date")

        details = fields.get("details") or {}
        if not isinstance(details, dict):
            raise ValidationError("details must be an object", field="details")

        return {
            "name": name,
            "module_type": module_type,
            "module_id": module_id,
            "description": fields.get("description"),
            "department": fields.get("department"),
            "priority": priority,
            "language": language,
            "due_date": to_naive_utc(due_date),
            "details": details,
        }

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    def set_status(self, workflow_id: str, actor_id: str, new_status: str,
                   comment: Optional[str] = None) -> ApprovalItem:
        """
        Approve or reject an item.

        Args:
            workflow_id: Item to decide
            actor_id: Deciding user
            new_status: "approved" or "rejected"
            comment: Optional reviewer comment

        Returns:
            The updated item

        Raises:
            ValidationError: new_status is not an outcome, or comment too long
            NotFoundError: Unknown item
            InvalidTransitionError: Item is terminal, not in review, or changed concurrently
            ForbiddenError: Actor holds no pending assignment and no override role
        """
        try:
            return self._set_status(workflow_id, actor_id, new_status, comment)
        except ApprovalError:
            self.db.rollback()
            raise

    def _set_status(self, workflow_id, actor_id, new_status, comment):
        try:
            outcome = ApprovalState(new_status)
        except ValueError:
            outcome = None
        if outcome not in OUTCOME_TRANSITIONS:
            raise ValidationError(
                f"Status must be one of {', '.join(s.value for s in OUTCOME_TRANSITIONS)}",
                field="status",
            )
        self._validate_comment(comment)

        item = self.store.get_item(workflow_id, for_update=True)
        if item is None:
            raise NotFoundError(f"Approval item {workflow_id} not found")

        transition = OUTCOME_TRANSITIONS[outcome]
        machine = ApprovalStateMachine(item.workflow_id, item.status)
        if machine.is_terminal:
            raise InvalidTransitionError(
                f"Item {workflow_id} is already {machine.state.value}",
                from_state=machine.state.value,
                transition=transition.value,
            )

        actor = self.directory.get_user(actor_id)
        assignment = self.store.active_assignment(workflow_id, actor_id)
        decide = Permission(Resource.APPROVALS, Action.APPROVE if outcome == ApprovalState.APPROVED else Action.REJECT)
        if assignment is None and not has_permission(actor, decide):
            raise ForbiddenError(f"User {actor_id} is not assigned to {workflow_id}")

        rule = machine.transition(transition)

        if not self.store.compare_and_set_status(workflow_id, rule.from_state.value, rule.to_state.value):
            raise InvalidTransitionError(
                f"Item {workflow_id} was changed by another request",
                from_state=rule.from_state.value,
                transition=transition.value,
            )

        now = utcnow()
        actor_name = actor.name if actor else actor_id
        self.store.append_history(ApprovalHistory(
            history_id=new_history_id(),
            workflow_id=workflow_id,
            action_type=rule.history_action.value,
            action_by=actor_id,
            action_by_name=actor_name,
            previous_status=rule.from_state.value,
            new_status=rule.to_state.value,
            details={"assignment_id": assignment.id if assignment else None},
            comments=comment,
            action_date=now,
        ))

        if assignment is not None:
            self.store.complete_assignment(assignment, comments=comment, completed_at=now)

        self.db.commit()
        self.db.refresh(item)
        logger.info(f"{workflow_id}: {rule.from_state.value} -> {rule.to_state.value} by {actor_id}")

        self._sync_module(item, outcome.value)

        recipients = [item.submitted_by] + self.store.assignee_ids(workflow_id)
        recipients = [r for r in dict.fromkeys(recipients) if r and r != actor_id]
        self.dispatcher.emit(workflow_id, EventType.COMPLETION, recipients, self._details(item))
        self.db.commit()

        return item

    def _sync_module(self, item: ApprovalItem, outcome: str) -> None:
        """Propagate an outcome; failures are logged, the transition stands."""
        try:
            self.registry.apply(item.module_type, item.module_id, outcome)
        except UnsupportedModuleTypeError as e:
            logger.warning(f"Module sync skipped for {item.workflow_id}: {e.message}")
        except Exception:
            logger.exception(f"Module sync failed for {item.workflow_id} ({item.module_type}:{item.module_id})")

    # ------------------------------------------------------------------
    # Manual assignment
    # ------------------------------------------------------------------

    def assign(
        self,
        workflow_id: str,
        actor_id: str,
        assignee_id: str,
        due_date: Optional[datetime] = None,
        priority: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> ApprovalAssignment:
        """
        Assign a reviewer to an item.

        Raises:
            ForbiddenError: Actor is not an admin or compliance officer
            NotFoundError: Unknown item or assignee
            InvalidTransitionError: Item is terminal
            ValidationError: Invalid priority or comment
        """
        try:
            return self._assign(workflow_id, actor_id, assignee_id, due_date, priority, comment)
        except ApprovalError:
            self.db.rollback()
            raise

    def _assign(self, workflow_id, actor_id, assignee_id, due_date, priority, comment):
        actor = self.directory.get_user(actor_id)
        require_permission(actor, Permission(Resource.ASSIGNMENTS, Action.CREATE))

        if priority is not None and priority not in {p.value for p in Priority}:
            raise ValidationError(f"Unknown priority '{priority}'", field="priority")
        self._validate_comment(comment)

        item = self.store.get_item(workflow_id, for_update=True)
        if item is None:
            raise NotFoundError(f"Approval item {workflow_id} not found")
        assignee = self.directory.get_user(assignee_id)
        if assignee is None:
            raise NotFoundError(f"User {assignee_id} not found")

        machine = ApprovalStateMachine(item.workflow_id, item.status)
        rule = machine.transition(ApprovalTransition.ASSIGN)

        now = utcnow()
        assignment = self.store.add_assignment(ApprovalAssignment(
            workflow_id=workflow_id,
            assigned_to=assignee.uid,
            assigned_by=actor_id,
            assigned_date=now,
            due_date=to_naive_utc(due_date) if due_date is not None else item.due_date,
            priority=priority or item.priority,
            status=AssignmentStatus.PENDING.value,
            comments=comment,
            is_auto_assigned=False,
        ))

        if rule.from_state != rule.to_state:
            if not self.store.compare_and_set_status(workflow_id, rule.from_state.value, rule.to_state.value):
                raise InvalidTransitionError(
                    f"Item {workflow_id} was changed by another request",
                    from_state=rule.from_state.value,
                    transition=rule.transition.value,
                )

        self.store.append_history(ApprovalHistory(
            history_id=new_history_id(),
            workflow_id=workflow_id,
            action_type=rule.history_action.value,
            action_by=actor_id,
            action_by_name=actor.name if actor else actor_id,
            previous_status=rule.from_state.value,
            new_status=rule.to_state.value,
            details={"assigned_to": assignee.uid, "assignment_id": assignment.id},
            comments=comment,
            action_date=now,
        ))

        self.db.commit()
        self.db.refresh(item)
        logger.info(f"{workflow_id} assigned to {assignee.uid} by {actor_id}")

        details = self._details(item)
        details["priority"] = assignment.priority
        details["due_date"] = assignment.due_date.isoformat() if assignment.due_date else None
        self.dispatcher.emit(workflow_id, EventType.ASSIGNMENT, [assignee.uid], details)
        self.db.commit()

        return assignment

    def auto_assign(self, workflow_id: str, actor_id: str, force: bool = False) -> Tuple[ApprovalItem, bool]:
        """
        Run automatic assignment on demand for an existing item.

        Used for items that were left pending at submission, for example when
        no candidate could be resolved. The installation settings are read
        fresh; the auto-assign switch does not apply to an explicit request.

        Args:
            workflow_id: Item to assign
            actor_id: Requesting user
            force: Assign even when the item already has assignments

        Returns:
            (item, auto_assigned)

        Raises:
            ForbiddenError: Actor is not an admin or compliance officer
            NotFoundError: Unknown item
            InvalidTransitionError: Item is terminal, or already assigned without ``force``
        """
        try:
            return self._auto_assign(workflow_id, actor_id, force)
        except ApprovalError:
            self.db.rollback()
            raise

    def _auto_assign(self, workflow_id, actor_id, force):
        actor = self.directory.get_user(actor_id)
        require_permission(actor, Permission(Resource.ASSIGNMENTS, Action.CREATE))

        item = self.store.get_item(workflow_id, for_update=True)
        if item is None:
            raise NotFoundError(f"Approval item {workflow_id} not found")

        ApprovalStateMachine(item.workflow_id, item.status).check(ApprovalTransition.ASSIGN)

        if not force and self.store.list_assignments(workflow_id):
            raise InvalidTransitionError(
                f"Item {workflow_id} already has assignments; force to assign again",
                from_state=item.status,
                transition=ApprovalTransition.ASSIGN.value,
            )

        snapshot = self.settings_store.snapshot_installation()
        auto_assigned = self.auto_assigner.try_auto_assign(item, snapshot, require_enabled=False)
        self.db.commit()
        self.db.refresh(item)

        logger.info(f"On-demand auto-assignment of {workflow_id} by {actor_id}: auto_assigned={auto_assigned}")
        return item, auto_assigned

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_item(self, workflow_id: str) -> ApprovalItem:
        item = self.store.get_item(workflow_id)
        if item is None:
            raise NotFoundError(f"Approval item {workflow_id} not found")
        return item

    def get_detail(self, workflow_id: str) -> Dict[str, Any]:
        """Item with its assignments and ordered history."""
        item = self.get_item(workflow_id)
        return {
            "item": item,
            "assignments": self.store.list_assignments(workflow_id),
            "history": self.store.list_history(workflow_id),
        }

    def list_items(
        self,
        status: Optional[str] = None,
        module_type: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        if page < 1:
            raise ValidationError("page must be at least 1", field="page")
        if limit < 1 or limit > self.settings.max_page_size:
            raise ValidationError(f"limit must be between 1 and {self.settings.max_page_size}", field="limit")

        items, total = self.store.list_items(
            status=status,
            module_type=module_type,
            priority=priority,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": (total + limit - 1) // limit,
        }

    def statistics(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Dashboard counts.

        Returns:
            total, by_status, by_module_type, by_priority, recent_submissions
            (last 30 days), due_soon (open items due within 48h) and
            average_approval_hours (creation to approval, one decimal)
        """
        now = to_naive_utc(now) or utcnow()

        by_status = {s.value: 0 for s in ApprovalState}
        by_status.update(self.store.count_items_by("status"))
        by_module_type = {m.value: 0 for m in ModuleType}
        by_module_type.update(self.store.count_items_by("module_type"))
        by_priority = {p.value: 0 for p in Priority}
        by_priority.update(self.store.count_items_by("priority"))

        approved = self.store.items_with_status(ApprovalState.APPROVED.value)
        durations = [
            (item.updated_at - item.created_at).total_seconds() / 3600
            for item in approved
            if item.updated_at and item.created_at
        ]
        average = round(sum(durations) / len(durations), 1) if durations else 0

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_module_type": by_module_type,
            "by_priority": by_priority,
            "recent_submissions": self.store.count_items_created_since(now - timedelta(days=RECENT_SUBMISSION_DAYS)),
            "due_soon": self.store.count_items_due_between(
                now, now + timedelta(hours=DUE_SOON_HOURS), [s.value for s in OPEN_STATES]
            ),
            "average_approval_hours": average,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_comment(comment: Optional[str]) -> None:
        if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(f"comment must be at most {MAX_COMMENT_LENGTH} characters", field="comment")

    @staticmethod
    def _details(item: ApprovalItem) -> Dict[str, Any]:
        return {
            "name": item.name,
            "module_type": item.module_type,
            "status": item.status,
            "priority": item.priority,
            "due_date": item.due_date.isoformat() if item.due_date else None,
        }
