"""Tests for state stores and the run lock."""

import json

import pytest

from stackwright.core.errors import StackLockedError
from stackwright.state import (
    FileRunLock,
    FileStateStore,
    LockInfo,
    MemoryRunLock,
    MemoryStateStore,
    ResourceRecord,
    StackState,
)


def sample_state() -> StackState:
    return StackState(
        stack="web",
        apply_order=["vpc", "database"],
        resources={
            "vpc": ResourceRecord(name="vpc", kind="network", physical_id="network-0001", config={}),
            "database": ResourceRecord(
                name="database",
                kind="database",
                physical_id="database-0002",
                config={"network": {"$ref": "vpc.id"}},
                resolved_config={"network": "network-0001"},
                outputs={"port": "3306"},
                depends_on=["vpc"],
            ),
        },
    )


class TestStackState:
    """Tests for StackState serialisation."""

    def test_round_trip_through_dict(self):
        state = sample_state()
        state.orphaned.append({"name": "database", "kind": "database", "physical_id": "database-0000"})

        restored = StackState.from_dict(json.loads(json.dumps(state.to_dict())))

        assert restored == state

    def test_missing_optional_fields_default(self):
        state = StackState.from_dict({"stack": "web"})

        assert state.is_empty
        assert state.serial == 0
        assert state.orphaned == []


class TestMemoryStateStore:
    """Tests for MemoryStateStore."""

    def test_read_unknown_stack_is_empty(self, store):
        state = store.read("web")

        assert state.stack == "web"
        assert state.is_empty

    def test_write_bumps_serial(self, store):
        store.write(sample_state())
        store.write(store.read("web"))

        assert store.read("web").serial == 2

    def test_reads_are_copies(self, store):
        store.write(sample_state())
        state = store.read("web")
        state.resources.clear()

        assert "vpc" in store.read("web")

    def test_lock_blocks_second_run(self, store):
        with store.lock("web", "run-1"):
            with pytest.raises(StackLockedError) as exc_info:
                with store.lock("web", "run-2"):
                    pass
        assert exc_info.value.holder["run_id"] == "run-1"

        with store.lock("web", "run-3"):
            pass

    def test_lock_is_per_stack(self, store):
        with store.lock("web", "run-1"):
            with store.lock("api", "run-2"):
                pass

    def test_force_unlock(self):
        locks = MemoryRunLock()
        locks.acquire(LockInfo(stack="web", run_id="run-1"))

        assert locks.force_release("web")
        assert not locks.force_release("web")
        assert locks.holder("web") is None


class TestFileStateStore:
    """Tests for FileStateStore."""

    def test_read_missing_file_is_empty(self, tmp_path):
        assert FileStateStore(tmp_path).read("web").is_empty

    def test_write_then_read(self, tmp_path):
        store = FileStateStore(tmp_path)
        store.write(sample_state())

        state = store.read("web")

        assert state.serial == 1
        assert state.apply_order == ["vpc", "database"]
        assert state.get("database").config == {"network": {"$ref": "vpc.id"}}

    def test_write_leaves_no_temp_files(self, tmp_path):
        FileStateStore(tmp_path).write(sample_state())

        assert sorted(p.name for p in tmp_path.iterdir()) == ["web.state.json"]

    def test_state_file_is_json(self, tmp_path):
        store = FileStateStore(tmp_path)
        store.write(sample_state())

        data = json.loads(store.path_for("web").read_text())

        assert data["resources"]["vpc"]["physical_id"] == "network-0001"

    def test_lock_file_created_and_removed(self, tmp_path):
        store = FileStateStore(tmp_path)

        with store.lock("web", "run-1", "apply"):
            holder = store.holder("web")
            assert holder.run_id == "run-1"
            assert holder.operation == "apply"
            assert (tmp_path / "web.lock").exists()

        assert not (tmp_path / "web.lock").exists()

    def test_lock_held_by_other_process(self, tmp_path):
        store = FileStateStore(tmp_path)
        FileRunLock(tmp_path).acquire(LockInfo(stack="web", run_id="crashed"))

        with pytest.raises(StackLockedError) as exc_info:
            with store.lock("web", "run-2"):
                pass

        assert exc_info.value.holder["run_id"] == "crashed"

    def test_release_by_non_owner_keeps_lock(self, tmp_path):
        locks = FileRunLock(tmp_path)
        locks.acquire(LockInfo(stack="web", run_id="run-1"))

        locks.release("web", "run-2")

        assert locks.holder("web").run_id == "run-1"

    def test_force_unlock_removes_stale_lock(self, tmp_path):
        store = FileStateStore(tmp_path)
        FileRunLock(tmp_path).acquire(LockInfo(stack="web", run_id="crashed"))

        assert store.force_unlock("web")
        assert not store.force_unlock("web")
        with store.lock("web", "run-2"):
            pass
