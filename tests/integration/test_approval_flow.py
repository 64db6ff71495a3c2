"""End-to-end approval workflow scenarios against an in-memory database."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from approvalflow.core.approval.service import ApprovalService
from approvalflow.core.errors import (
    ValidationError,
    NotFoundError,
    ForbiddenError,
    InvalidTransitionError,
)
from approvalflow.db.base import utcnow
from approvalflow.db.models import (
    ApprovalAssignment,
    ApprovalHistory,
    ApprovalNotification,
)
from approvalflow.db.store import WorkflowStore
from tests.factories import (
    create_assignment,
    create_installation_settings,
    create_item,
    create_user,
)


pytestmark = pytest.mark.integration


def _submit(service, submitter, **overrides):
    fields = {
        "name": "Vendor DPA",
        "module_type": "document",
        "module_id": "doc-1",
        "priority": "high",
    }
    fields.update(overrides)
    return service.submit(fields, submitter_id=submitter.uid if submitter else None)


def _history(db_session, workflow_id):
    return WorkflowStore(db_session).list_history(workflow_id)


def _notifications(db_session, **filters):
    return db_session.query(ApprovalNotification).filter_by(**filters).order_by(ApprovalNotification.id).all()


# ---------------------------------------------------------------------------
# Submission and auto-assignment
# ---------------------------------------------------------------------------


class TestSubmission:

    def test_document_routes_to_legal(self, db_session, service):
        submitter = create_user(db_session, uid="sub-1", role="user")
        create_user(db_session, uid="legal-b", role="legal")
        create_user(db_session, uid="legal-a", role="legal")
        admin = create_user(db_session, uid="admin-1", role="admin")

        item, auto_assigned = _submit(service, submitter)

        assert auto_assigned is True
        assert item.status == "in_review"
        assert item.workflow_id.startswith("WF-doc-")
        assert len(item.workflow_id) == len("WF-doc-") + 8
        assert item.submitter_name == submitter.display_name

        assignments = db_session.query(ApprovalAssignment).filter_by(workflow_id=item.workflow_id).all()
        assert len(assignments) == 1
        assert assignments[0].assigned_to == "legal-a"
        assert assignments[0].is_auto_assigned is True
        assert assignments[0].assigned_by is None
        assert assignments[0].priority == "high"

        history = _history(db_session, item.workflow_id)
        assert [h.action_type for h in history] == ["submitted", "assigned"]
        assert history[1].action_by is None
        assert history[1].action_by_name == "System"
        assert history[1].previous_status == "pending"
        assert history[1].new_status == "in_review"

        assignment_notes = _notifications(db_session, type="assignment")
        assert [(n.user_id, n.priority) for n in assignment_notes] == [("legal-a", "high")]
        submission_notes = _notifications(db_session, related_action="submission")
        assert [n.user_id for n in submission_notes] == [admin.uid]

    def test_auto_assign_disabled_keeps_item_pending(self, db_session, service):
        submitter = create_user(db_session, role="user")
        create_user(db_session, uid="co-1", role="compliance_officer")
        create_user(db_session, uid="admin-1", role="admin")
        create_installation_settings(db_session, auto_assign_enabled=False)

        item, auto_assigned = _submit(service, submitter, module_type="risk_assessment")

        assert auto_assigned is False
        assert item.status == "pending"
        assert db_session.query(ApprovalAssignment).count() == 0
        assert [h.action_type for h in _history(db_session, item.workflow_id)] == ["submitted"]
        # Admins still hear about the submission
        assert [n.user_id for n in _notifications(db_session, related_action="submission")] == ["admin-1"]

    def test_installation_default_assignees_win(self, db_session, service):
        create_user(db_session, uid="legal-1", role="legal")
        create_user(db_session, uid="picked", role="user")
        create_installation_settings(db_session, default_assignees=["picked", "legal-1"])

        item, auto_assigned = _submit(service, None)

        assert auto_assigned is True
        assignment = db_session.query(ApprovalAssignment).one()
        assert assignment.assigned_to == "picked"
        assert item.submitted_by is None

    def test_empty_directory_leaves_item_pending(self, db_session, service):
        item, auto_assigned = _submit(service, None)

        assert auto_assigned is False
        assert item.status == "pending"

    def test_settings_snapshot_taken_at_submit(self, db_session, service):
        create_user(db_session, uid="legal-1", role="legal")
        create_installation_settings(db_session, auto_assign_enabled=True)
        snapshots = []
        original = service.auto_assigner.try_auto_assign

        def capture(item, snapshot):
            snapshots.append(snapshot)
            service.settings_store.update_installation({"auto_assign_enabled": False})
            return original(item, snapshot)

        with patch.object(service.auto_assigner, "try_auto_assign", side_effect=capture):
            _, auto_assigned = _submit(service, None)

        assert snapshots[0].auto_assign_enabled is True
        assert auto_assigned is True

    def test_auto_assign_failure_rolls_back_to_pending(self, db_session, service):
        create_user(db_session, uid="legal-1", role="legal")

        with patch.object(WorkflowStore, "append_history", autospec=True) as append:
            calls = []

            def fail_on_assigned(store, entry):
                calls.append(entry.action_type)
                if entry.action_type == "assigned":
                    raise RuntimeError("disk full")
                store.db.add(entry)
                store.db.flush()
                return entry

            append.side_effect = fail_on_assigned
            item, auto_assigned = _submit(service, None)

        assert auto_assigned is False
        assert item.status == "pending"
        assert db_session.query(ApprovalAssignment).count() == 0
        assert [h.action_type for h in _history(db_session, item.workflow_id)] == ["submitted"]
        assert _notifications(db_session, type="assignment") == []

    @pytest.mark.parametrize("overrides,field", [
        ({"name": "  "}, "name"),
        ({"module_id": ""}, "module_id"),
        ({"module_type": "vendor_review"}, "module_type"),
        ({"priority": "urgent"}, "priority"),
        ({"language": "fr"}, "language"),
    ])
    def test_invalid_submission(self, db_session, service, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            _submit(service, None, **overrides)
        assert exc_info.value.field == field
        assert WorkflowStore(db_session).list_items()[1] == 0


# ---------------------------------------------------------------------------
# Status changes
# ---------------------------------------------------------------------------


class TestSetStatus:

    def test_assigned_reviewer_approves(self, db_session, service, module_handlers):
        submitter = create_user(db_session, uid="sub-1", role="user")
        create_user(db_session, uid="legal-1", role="legal")
        item, _ = _submit(service, submitter, module_id="doc-77")

        updated = service.set_status(item.workflow_id, "legal-1", "approved", "Looks good")

        assert updated.status == "approved"
        assignment = db_session.query(ApprovalAssignment).one()
        assert assignment.status == "completed"
        assert assignment.completed_date is not None
        assert assignment.comments == "Looks good"
        assert module_handlers["document"].calls == [("doc-77", "approved")]

        completion = _notifications(db_session, related_action="completion")
        assert [n.user_id for n in completion] == ["sub-1"]
        assert completion[0].type == "update"

    def test_admin_approval_without_assignment(self, db_session, service, module_handlers):
        submitter = create_user(db_session, uid="sub-1", role="user")
        create_user(db_session, uid="co-1", role="compliance_officer")
        create_user(db_session, uid="admin-1", role="admin")
        item, _ = _submit(service, submitter, module_type="risk_assessment", module_id="ra-5")

        updated = service.set_status(item.workflow_id, "admin-1", "approved")

        assert updated.status == "approved"
        # The reviewer's own assignment stays open; admin held none
        assert db_session.query(ApprovalAssignment).one().status == "pending"
        history = _history(db_session, item.workflow_id)
        assert history[-1].action_type == "approved"
        assert history[-1].action_by == "admin-1"
        assert module_handlers["risk_assessment"].calls == [("ra-5", "approved")]
        recipients = {n.user_id for n in _notifications(db_session, related_action="completion")}
        assert recipients == {"sub-1", "co-1"}

    def test_unassigned_user_is_forbidden(self, db_session, service):
        submitter = create_user(db_session, uid="sub-1", role="user")
        create_user(db_session, uid="legal-1", role="legal")
        create_user(db_session, uid="legal-2", role="legal")
        create_user(db_session, uid="legal-3", role="legal")
        item, _ = _submit(service, submitter)

        with pytest.raises(ForbiddenError):
            service.set_status(item.workflow_id, "legal-3", "approved")
        # Submitting grants nothing
        with pytest.raises(ForbiddenError):
            service.set_status(item.workflow_id, "sub-1", "rejected")

        assert service.get_item(item.workflow_id).status == "in_review"
        assert len(_history(db_session, item.workflow_id)) == 2

    def test_terminal_item_rejects_further_changes(self, db_session, service):
        create_user(db_session, uid="legal-1", role="legal")
        create_user(db_session, uid="admin-1", role="admin")
        item, _ = _submit(service, None)
        service.set_status(item.workflow_id, "legal-1", "rejected", "Missing annex")

        for actor in ("legal-1", "admin-1"):
            for status in ("approved", "rejected"):
                with pytest.raises(InvalidTransitionError):
                    service.set_status(item.workflow_id, actor, status)

        assert service.get_item(item.workflow_id).status == "rejected"
        assert [h.action_type for h in _history(db_session, item.workflow_id)] == [
            "submitted", "assigned", "rejected",
        ]

    def test_pending_item_cannot_be_approved(self, db_session, service):
        create_user(db_session, uid="admin-1", role="admin")
        create_installation_settings(db_session, auto_assign_enabled=False)
        item, _ = _submit(service, None)

        with pytest.raises(InvalidTransitionError):
            service.set_status(item.workflow_id, "admin-1", "approved")
        assert service.get_item(item.workflow_id).status == "pending"

    @pytest.mark.parametrize("status", ["pending", "in_review", "archived", ""])
    def test_status_must_be_an_outcome(self, db_session, service, status):
        item = create_item(db_session, status="in_review")
        with pytest.raises(ValidationError):
            service.set_status(item.workflow_id, "anyone", status)

    def test_comment_length_is_bounded(self, db_session, service):
        item = create_item(db_session, status="in_review")
        with pytest.raises(ValidationError):
            service.set_status(item.workflow_id, "anyone", "approved", "x" * 2001)

    def test_unknown_item(self, service):
        with pytest.raises(NotFoundError):
            service.set_status("WF-doc-deadbeef", "anyone", "approved")

    def test_sync_failure_does_not_undo_transition(self, db_session, registry):
        create_user(db_session, uid="legal-1", role="legal")
        registry.register("document", MagicMock(side_effect=RuntimeError("module offline")))
        service = ApprovalService(db_session, registry=registry)
        item, _ = _submit(service, None)

        updated = service.set_status(item.workflow_id, "legal-1", "approved")

        assert updated.status == "approved"
        assert service.get_item(item.workflow_id).status == "approved"

    def test_unregistered_module_type_is_tolerated(self, db_session):
        from approvalflow.core.approval.module_sync import ModuleStatusRegistry

        create_user(db_session, uid="legal-1", role="legal")
        service = ApprovalService(db_session, registry=ModuleStatusRegistry())
        item, _ = _submit(service, None)

        assert service.set_status(item.workflow_id, "legal-1", "rejected").status == "rejected"

    def test_completion_notifies_every_past_assignee_once(self, db_session, service):
        submitter = create_user(db_session, uid="sub-1", role="user")
        create_user(db_session, uid="legal-1", role="legal")
        create_user(db_session, uid="legal-2", role="legal")
        create_user(db_session, uid="co-1", role="compliance_officer")
        item, _ = _submit(service, submitter)
        service.assign(item.workflow_id, "co-1", "legal-2")
        service.assign(item.workflow_id, "co-1", "legal-2")
        service.assign(item.workflow_id, "co-1", "sub-1")

        service.set_status(item.workflow_id, "legal-2", "approved")

        recipients = [n.user_id for n in _notifications(db_session, related_action="completion")]
        assert sorted(recipients) == ["legal-1", "sub-1"]

    def test_most_recent_assignment_is_completed(self, db_session, service):
        create_user(db_session, uid="legal-1", role="legal")
        item = create_item(db_session, module_type="document", status="in_review")
        older = create_assignment(db_session, item, "legal-1")
        newer = create_assignment(db_session, item, "legal-1", assigned_by="co-1")
        db_session.commit()

        service.set_status(item.workflow_id, "legal-1", "approved", "ok")

        db_session.refresh(older)
        db_session.refresh(newer)
        assert newer.status == "completed"
        assert older.status == "pending"


# ---------------------------------------------------------------------------
# Manual assignment
# ---------------------------------------------------------------------------


class TestAssign:

    def test_assign_moves_pending_to_in_review(self, db_session, service):
        create_user(db_session, uid="co-1", role="compliance_officer")
        create_user(db_session, uid="legal-1", role="legal")
        create_installation_settings(db_session, auto_assign_enabled=False)
        item, _ = _submit(service, None, priority="low")
        due = utcnow() + timedelta(days=3)

        assignment = service.assign(item.workflow_id, "co-1", "legal-1", due_date=due, comment="please")

        assert assignment.assigned_by == "co-1"
        assert assignment.is_auto_assigned is False
        assert assignment.priority == "low"
        assert service.get_item(item.workflow_id).status == "in_review"
        history = _history(db_session, item.workflow_id)
        assert history[-1].action_type == "assigned"
        assert history[-1].previous_status == "pending"
        assert history[-1].new_status == "in_review"
        note = _notifications(db_session, type="assignment")[-1]
        assert note.user_id == "legal-1"
        assert note.priority == "low"

    def test_additional_reviewer_keeps_in_review(self, db_session, service):
        create_user(db_session, uid="admin-1", role="admin")
        create_user(db_session, uid="legal-1", role="legal")
        create_user(db_session, uid="legal-2", role="legal")
        item, _ = _submit(service, None)

        assignment = service.assign(item.workflow_id, "admin-1", "legal-2", priority="critical")

        assert assignment.priority == "critical"
        assert service.get_item(item.workflow_id).status == "in_review"
        assert db_session.query(ApprovalAssignment).count() == 2
        # The new reviewer may now decide
        assert service.set_status(item.workflow_id, "legal-2", "approved").status == "approved"

    def test_only_admin_or_compliance_may_assign(self, db_session, service):
        create_user(db_session, uid="legal-1", role="legal")
        create_user(db_session, uid="legal-2", role="legal")
        item = create_item(db_session)

        with pytest.raises(ForbiddenError):
            service.assign(item.workflow_id, "legal-1", "legal-2")
        with pytest.raises(ForbiddenError):
            service.assign(item.workflow_id, "ghost", "legal-2")

    def test_unknown_item_or_assignee(self, db_session, service):
        create_user(db_session, uid="admin-1", role="admin")
        item = create_item(db_session)
        db_session.commit()

        with pytest.raises(NotFoundError):
            service.assign("WF-ris-deadbeef", "admin-1", "admin-1")
        with pytest.raises(NotFoundError):
            service.assign(item.workflow_id, "admin-1", "nobody")

    def test_terminal_item_cannot_be_assigned(self, db_session, service):
        create_user(db_session, uid="admin-1", role="admin")
        item = create_item(db_session, status="approved")

        with pytest.raises(InvalidTransitionError):
            service.assign(item.workflow_id, "admin-1", "admin-1")
        assert db_session.query(ApprovalAssignment).count() == 0


# ---------------------------------------------------------------------------
# On-demand auto-assignment
# ---------------------------------------------------------------------------


class TestOnDemandAutoAssign:

    def test_pending_item_is_assigned_once_reviewers_exist(self, db_session, service):
        create_user(db_session, uid="co-1", role="compliance_officer")
        item, auto_assigned = _submit(service, None, module_type="training", module_id="t-1")
        assert auto_assigned is False

        create_user(db_session, uid="admin-1", role="admin")
        item, auto_assigned = service.auto_assign(item.workflow_id, "co-1")

        assert auto_assigned is True
        assert item.status == "in_review"
        assignment = db_session.query(ApprovalAssignment).one()
        assert assignment.assigned_to == "admin-1"
        assert assignment.is_auto_assigned is True
        history = _history(db_session, item.workflow_id)
        assert [h.action_type for h in history] == ["submitted", "assigned"]
        assert history[-1].action_by_name == "System"

    def test_explicit_request_ignores_disabled_switch(self, db_session, service):
        create_user(db_session, uid="co-1", role="compliance_officer")
        create_installation_settings(db_session, auto_assign_enabled=False)
        item, _ = _submit(service, None, module_type="risk_assessment")

        item, auto_assigned = service.auto_assign(item.workflow_id, "co-1")

        assert auto_assigned is True
        assert db_session.query(ApprovalAssignment).one().assigned_to == "co-1"

    def test_reads_current_installation_settings(self, db_session, service):
        create_user(db_session, uid="co-1", role="compliance_officer")
        create_user(db_session, uid="picked", role="user")
        create_installation_settings(db_session, auto_assign_enabled=False)
        item, _ = _submit(service, None)

        service.settings_store.update_installation({"default_assignees": ["picked"]})
        service.auto_assign(item.workflow_id, "co-1")

        assert db_session.query(ApprovalAssignment).one().assigned_to == "picked"

    def test_existing_assignments_need_force(self, db_session, service):
        create_user(db_session, uid="legal-1", role="legal")
        create_user(db_session, uid="admin-1", role="admin")
        item, _ = _submit(service, None)

        with pytest.raises(InvalidTransitionError):
            service.auto_assign(item.workflow_id, "admin-1")
        assert db_session.query(ApprovalAssignment).count() == 1

        item, auto_assigned = service.auto_assign(item.workflow_id, "admin-1", force=True)

        assert auto_assigned is True
        assert item.status == "in_review"
        assert db_session.query(ApprovalAssignment).count() == 2
        last = _history(db_session, item.workflow_id)[-1]
        assert (last.previous_status, last.new_status) == ("in_review", "in_review")

    def test_no_candidates_returns_false(self, db_session, service):
        create_user(db_session, uid="co-1", role="compliance_officer")
        item, _ = _submit(service, None)

        # Documents route to legal, then admins; neither exists
        item, auto_assigned = service.auto_assign(item.workflow_id, "co-1")

        assert auto_assigned is False
        assert item.status == "pending"

    def test_only_admin_or_compliance_may_request(self, db_session, service):
        create_user(db_session, uid="legal-1", role="legal")
        item = create_item(db_session)

        with pytest.raises(ForbiddenError):
            service.auto_assign(item.workflow_id, "legal-1")

    def test_terminal_and_unknown_items(self, db_session, service):
        create_user(db_session, uid="admin-1", role="admin")
        item = create_item(db_session, status="rejected")
        db_session.commit()

        with pytest.raises(InvalidTransitionError):
            service.auto_assign(item.workflow_id, "admin-1", force=True)
        with pytest.raises(NotFoundError):
            service.auto_assign("WF-doc-deadbeef", "admin-1")


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------


class TestHistory:

    def test_one_history_row_per_status_change(self, db_session, service):
        create_user(db_session, uid="co-1", role="compliance_officer")
        create_user(db_session, uid="legal-1", role="legal")
        create_installation_settings(db_session, auto_assign_enabled=False)
        item, _ = _submit(service, None)

        service.assign(item.workflow_id, "co-1", "legal-1")
        service.set_status(item.workflow_id, "legal-1", "approved")

        history = _history(db_session, item.workflow_id)
        assert [(h.previous_status, h.new_status) for h in history] == [
            (None, "pending"),
            ("pending", "in_review"),
            ("in_review", "approved"),
        ]
        dates = [h.action_date for h in history]
        assert dates == sorted(dates)
        assert all(h.history_id.startswith("HIST-") for h in history)
        assert len({h.history_id for h in history}) == 3

    def test_detail_includes_assignments_and_history(self, db_session, service):
        create_user(db_session, uid="legal-1", role="legal")
        item, _ = _submit(service, None)

        detail = service.get_detail(item.workflow_id)

        assert detail["item"].workflow_id == item.workflow_id
        assert [a.assigned_to for a in detail["assignments"]] == ["legal-1"]
        assert [h.action_type for h in detail["history"]] == ["submitted", "assigned"]

    def test_history_rows_are_never_rewritten(self, db_session, service):
        create_user(db_session, uid="legal-1", role="legal")
        item, _ = _submit(service, None)
        first = [(h.id, h.action_type, h.new_status) for h in _history(db_session, item.workflow_id)]

        service.set_status(item.workflow_id, "legal-1", "approved")

        after = [(h.id, h.action_type, h.new_status) for h in _history(db_session, item.workflow_id)]
        assert after[:len(first)] == first
        assert db_session.query(ApprovalHistory).count() == len(first) + 1
