"""Tests for the approval settings store."""

import dataclasses

import pytest

from approvalflow.core.errors import ValidationError
from approvalflow.services.settings_store import SettingsStore, SettingsSnapshot
from tests.factories import create_installation_settings


class TestSettingsStore:

    def test_get_creates_defaults_once(self, db_session):
        store = SettingsStore(db_session)

        first = store.get("alice")
        second = store.get("alice")

        assert first.id == second.id
        assert first.auto_assign_enabled is True
        assert first.default_assignees == []
        assert first.notification_frequency == "immediately"
        assert first.language == "en"

    def test_update_merges_fields(self, db_session):
        store = SettingsStore(db_session)
        store.get("alice")

        row = store.update("alice", {"language": "de", "auto_assign_enabled": False})

        assert row.language == "de"
        assert row.auto_assign_enabled is False
        assert row.email_notifications_enabled is True

    @pytest.mark.parametrize("changes", [
        {"colour": "blue"},
        {"language": "fr"},
        {"notification_frequency": "hourly"},
        {"auto_assign_enabled": "yes"},
        {"default_assignees": "bob"},
        {"default_assignees": ["bob", ""]},
    ])
    def test_update_rejects_invalid_input(self, db_session, changes):
        store = SettingsStore(db_session)
        with pytest.raises(ValidationError):
            store.update("alice", changes)
        assert store.find("alice") is None

    def test_snapshot_absent_when_never_configured(self, db_session):
        assert SettingsStore(db_session).snapshot_installation() is None

    def test_snapshot_is_immutable_copy(self, db_session):
        create_installation_settings(db_session, default_assignees=["amy"], auto_assign_enabled=False)
        store = SettingsStore(db_session)

        snapshot = store.snapshot_installation()
        store.update_installation({"default_assignees": ["zed"], "auto_assign_enabled": True})

        assert snapshot == SettingsSnapshot(auto_assign_enabled=False, default_assignees=("amy",), language="en")
        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.auto_assign_enabled = True

    def test_installation_owner_is_configurable(self, db_session):
        store = SettingsStore(db_session, installation_owner="__site__")
        store.update_installation({"default_assignees": ["amy"]})

        assert store.find("__site__").default_assignees == ["amy"]
        assert store.find("installation") is None
