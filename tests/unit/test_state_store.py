"""
Unit tests for the persisted sync state
"""

import json

import pytest

from core.exceptions import CheckpointError
from ingestion.checkpoint import SyncStateStore
from models.sync_state import SyncState


class TestSyncStateStore:
    """Test state file reads, writes and recovery"""

    def test_unknown_report_defaults_to_first_run(self, state_store):
        """Test a report with no entry is a first run"""
        state = state_store.get("general_ledger")

        assert state.is_first_run is True
        assert state.last_from == ""
        assert state.last_to == ""

    def test_set_then_get(self, state_store):
        """Test a written state is read back by a fresh store"""
        state_store.set(
            "general_ledger",
            SyncState(is_first_run=False, last_from="07/01/2024", last_to="10/19/2024")
        )

        reopened = SyncStateStore(state_store.path)
        state = reopened.get("general_ledger")

        assert state.is_first_run is False
        assert state.last_from == "07/01/2024"
        assert state.last_to == "10/19/2024"

    def test_update_keeps_other_reports(self, state_store):
        """Test the whole file is rewritten without losing other entries"""
        state_store.set("rent_roll", SyncState(is_first_run=False))
        state_store.set("general_ledger", SyncState(is_first_run=False, last_from="a", last_to="b"))

        data = json.loads(state_store.path.read_text())

        assert set(data) == {"rent_roll", "general_ledger"}
        assert data["rent_roll"]["is_first_run"] is False

    def test_reset_restores_first_run(self, state_store):
        """Test reset puts a report back into full backfill mode"""
        state_store.set("general_ledger", SyncState(is_first_run=False, last_from="a", last_to="b"))

        state = state_store.reset("general_ledger")

        assert state.is_first_run is True
        assert state_store.get("general_ledger").is_first_run is True
        assert state_store.get("general_ledger").last_from == ""

    def test_corrupted_file_treated_as_empty(self, state_store, caplog):
        """Test an unparseable file makes every report a first run"""
        state_store.path.parent.mkdir(parents=True, exist_ok=True)
        state_store.path.write_text("{not json")

        assert state_store.get("general_ledger").is_first_run is True
        assert state_store.all() == {}
        assert "Unreadable sync state" in caplog.text

    def test_non_object_root_treated_as_empty(self, state_store):
        """Test a JSON array root is rejected like a corrupt file"""
        state_store.path.parent.mkdir(parents=True, exist_ok=True)
        state_store.path.write_text("[1, 2, 3]")

        assert state_store.all() == {}

    def test_corrupted_file_is_replaced_on_write(self, state_store):
        """Test the next write produces a valid file again"""
        state_store.path.parent.mkdir(parents=True, exist_ok=True)
        state_store.path.write_text("garbage")

        state_store.set("rent_roll", SyncState(is_first_run=False))

        data = json.loads(state_store.path.read_text())
        assert data == {"rent_roll": {"is_first_run": False, "last_from": "", "last_to": ""}}

    def test_no_temp_files_left_behind(self, state_store):
        """Test the atomic rewrite cleans up its temporary file"""
        state_store.set("rent_roll", SyncState(is_first_run=False))
        state_store.set("rent_roll", SyncState(is_first_run=True))

        assert [p.name for p in state_store.path.parent.iterdir()] == [state_store.path.name]

    def test_unwritable_location_raises_checkpoint_error(self, tmp_path):
        """Test write failures surface as CheckpointError"""
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = SyncStateStore(blocker / "state.json")

        with pytest.raises(CheckpointError):
            store.set("rent_roll", SyncState())
