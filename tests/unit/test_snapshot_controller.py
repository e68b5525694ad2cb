"""
Unit tests for the snapshot controller.

Tests cover:
- Snapshot creation and retention
- Failed exports leave no snapshot behind
- Rollback argument validation and restore correctness
- Failed drop commits keep the live tables
"""

import os

import pytest

from quack.vault.engine import list_tables, list_views
from quack.vault.errors import CorruptArchiveError, EngineError, InvalidArgumentError, NotFoundError
from quack.vault.ingest import insert
from quack.vault.snapshot import SnapshotController, list_entries
from tests.helpers import count_rows, records


class FailingExportEngine:
    """Delegates to a real engine but refuses EXPORT DATABASE."""

    def __init__(self, engine):
        self._engine = engine

    def __getattr__(self, name):
        return getattr(self._engine, name)

    def execute(self, statement, parameters=None):
        if statement.startswith("EXPORT DATABASE"):
            raise EngineError("export refused", statement=statement)
        return self._engine.execute(statement, parameters)


class RefusingCommitTransaction:
    """Transaction whose commit fails after rolling back the real one."""

    def __init__(self, txn):
        self._txn = txn

    def execute(self, statement, parameters=None):
        self._txn.execute(statement, parameters)

    def commit(self):
        self._txn.rollback()
        raise EngineError("commit refused", statement="COMMIT")

    def rollback(self):
        self._txn.rollback()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self._txn.__exit__(exc_type, exc, tb)


class RefusingCommitEngine:
    """Delegates to a real engine but every commit fails."""

    def __init__(self, engine):
        self._engine = engine

    def __getattr__(self, name):
        return getattr(self._engine, name)

    def begin_transaction(self):
        return RefusingCommitTransaction(self._engine.begin_transaction())


class TestSnapshotController:
    """Tests for SnapshotController."""

    @pytest.fixture
    def snapshot_dir(self, tmp_path):
        """Snapshot directory beside the database file."""
        path = tmp_path / "snapshot"
        path.mkdir()
        return path

    @pytest.fixture
    def controller(self, engine, snapshot_dir, id_generator, tmp_path):
        """Controller keeping three snapshots."""
        return SnapshotController(
            engine,
            snapshot_dir,
            retention=3,
            id_generator=id_generator,
            scratch_dir=tmp_path,
        )

    def add_row(self, engine, value):
        insert(engine, "t", records({"name": "row", "value": value}))

    def scratch_leftovers(self, tmp_path):
        return [
            name
            for name in os.listdir(tmp_path)
            if name.startswith("quack-") or name.endswith(".partial")
        ]

    def test_retention_must_be_positive(self, engine, snapshot_dir):
        """Controller refuses a retention below 1."""
        with pytest.raises(InvalidArgumentError):
            SnapshotController(engine, snapshot_dir, retention=0)

    def test_take_snapshot(self, controller, engine, snapshot_dir, tmp_path):
        """Snapshot appears under its ID and scratch space is cleaned up."""
        self.add_row(engine, 1)

        info = controller.take_snapshot()

        assert info.snapshot_id == "000001"
        assert info.path == snapshot_dir / "000001"
        assert info.size_bytes == info.path.stat().st_size
        assert info.checksum.startswith("sha256:")
        assert info.created_at_ms is None
        assert list_entries(snapshot_dir) == ["000001"]
        assert self.scratch_leftovers(tmp_path) == []

    def test_snapshot_of_empty_database(self, controller, snapshot_dir):
        """An empty database still produces a snapshot."""
        controller.take_snapshot()

        assert list_entries(snapshot_dir) == ["000001"]

    def test_retention(self, controller, engine, snapshot_dir):
        """Only the newest snapshots are kept."""
        for value in range(5):
            self.add_row(engine, value)
            controller.take_snapshot()

        assert list_entries(snapshot_dir) == ["000003", "000004", "000005"]
        assert [info.snapshot_id for info in controller.list_snapshots()] == [
            "000003",
            "000004",
            "000005",
        ]

    def test_failed_export_leaves_nothing(self, engine, snapshot_dir, id_generator, tmp_path):
        """A failed export adds no snapshot and no partial file."""
        controller = SnapshotController(
            FailingExportEngine(engine),
            snapshot_dir,
            retention=3,
            id_generator=id_generator,
            scratch_dir=tmp_path,
        )

        with pytest.raises(EngineError, match="export refused"):
            controller.take_snapshot()

        assert list_entries(snapshot_dir) == []
        assert self.scratch_leftovers(tmp_path) == []

    @pytest.mark.parametrize("n", [0, -1, 4])
    def test_rollback_out_of_range(self, controller, engine, n):
        """n outside 1..retention is rejected before the database is touched."""
        self.add_row(engine, 1)
        controller.take_snapshot()
        self.add_row(engine, 2)

        with pytest.raises(InvalidArgumentError):
            controller.rollback(n)

        assert count_rows(engine, "t") == 2

    def test_rollback_without_snapshots(self, controller, engine):
        """Rollback with an empty snapshot directory raises NotFoundError."""
        self.add_row(engine, 1)

        with pytest.raises(NotFoundError):
            controller.rollback(1)

        assert count_rows(engine, "t") == 1

    def test_rollback_beyond_retained(self, controller, engine):
        """n larger than the number of retained snapshots raises NotFoundError."""
        self.add_row(engine, 1)
        controller.take_snapshot()

        with pytest.raises(NotFoundError):
            controller.rollback(2)

        assert count_rows(engine, "t") == 1

    def test_rollback_restores_snapshot(self, controller, engine):
        """Rollback n restores the n-th most recent snapshot."""
        for value in range(3):
            self.add_row(engine, value)
            controller.take_snapshot()
        # Rows 0..2 snapshotted, row 3 only live
        self.add_row(engine, 3)

        restored = controller.rollback(1)
        assert restored.snapshot_id == "000003"
        assert count_rows(engine, "t") == 3

        controller.rollback(3)
        assert count_rows(engine, "t") == 1

        controller.rollback(2)
        with engine.query("SELECT value FROM t ORDER BY value") as cursor:
            assert cursor.fetchall() == [(0,), (1,)]

    def test_rollback_drops_tables_created_later(self, controller, engine):
        """Tables that did not exist at snapshot time are gone after rollback."""
        self.add_row(engine, 1)
        controller.take_snapshot()
        insert(engine, "later", records({"x": 1}))

        controller.rollback(1)

        assert list_tables(engine) == ["t"]

    def test_rollback_preserves_snapshots(self, controller, engine, snapshot_dir):
        """Rollback does not add, remove or modify snapshots."""
        for value in range(2):
            self.add_row(engine, value)
            controller.take_snapshot()
        before = {name: (snapshot_dir / name).read_bytes() for name in list_entries(snapshot_dir)}

        controller.rollback(2)

        after = {name: (snapshot_dir / name).read_bytes() for name in list_entries(snapshot_dir)}
        assert after == before

    def test_failed_drop_commit_keeps_tables(self, engine, snapshot_dir, id_generator, tmp_path):
        """If the drop transaction cannot commit, the live tables survive."""
        controller = SnapshotController(
            RefusingCommitEngine(engine),
            snapshot_dir,
            retention=3,
            id_generator=id_generator,
            scratch_dir=tmp_path,
        )
        self.add_row(engine, 1)
        controller.take_snapshot()
        self.add_row(engine, 2)

        with pytest.raises(EngineError, match="commit refused"):
            controller.rollback(1)

        assert count_rows(engine, "t") == 2
        assert self.scratch_leftovers(tmp_path) == []

    def test_rollback_restores_views(self, controller, engine):
        """Views are replaced along with tables instead of clashing on import."""
        self.add_row(engine, 1)
        engine.execute("CREATE VIEW v AS SELECT * FROM t")
        controller.take_snapshot()
        self.add_row(engine, 2)

        controller.rollback(1)

        assert list_tables(engine) == ["t"]
        assert list_views(engine) == ["v"]
        assert count_rows(engine, "v") == 1

    def test_rollback_restores_sequences_and_macros(self, controller, engine):
        """Sequences and macros written by the export are replaced too."""
        self.add_row(engine, 1)
        engine.execute("CREATE SEQUENCE ids START 1")
        engine.execute("CREATE MACRO add_one(x) AS x + 1")
        controller.take_snapshot()

        controller.rollback(1)

        with engine.query("SELECT add_one(41)") as cursor:
            assert cursor.fetchone() == (42,)
        assert count_rows(engine, "t") == 1

    def test_corrupt_snapshot_keeps_database(self, controller, engine, snapshot_dir, tmp_path):
        """An unreadable archive fails the rollback before anything is dropped."""
        self.add_row(engine, 1)
        info = controller.take_snapshot()
        self.add_row(engine, 2)
        engine.execute("CREATE VIEW v AS SELECT * FROM t")
        info.path.write_bytes(b"not a zip archive")

        with pytest.raises(CorruptArchiveError):
            controller.rollback(1)

        assert count_rows(engine, "t") == 2
        assert list_views(engine) == ["v"]
        assert list_entries(snapshot_dir) == [info.snapshot_id]
        assert self.scratch_leftovers(tmp_path) == []
