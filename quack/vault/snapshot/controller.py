"""
Snapshot controller for quack-vault.

The controller runs the two protocols that share the snapshot directory:

Dump (taken on client close):
    1. EXPORT DATABASE into a scratch directory (JSON format)
    2. Zip the scratch directory into a partial file next to the snapshot
       directory, then atomically rename it to ``snapshot/<ULID>``
    3. Remove the scratch directory
    4. Rotate the snapshot directory down to the retention limit

Rollback (n = 1 is the newest snapshot):
    1. Validate 0 < n <= retention
    2. Unzip snapshot ``len - n`` into a scratch directory
    3. Drop every schema, view, table, macro and sequence in one
       transaction and commit
    4. IMPORT DATABASE from the scratch directory

Snapshot layout:
    <root>/snapshot/<ULID-1>   oldest retained
    <root>/snapshot/<ULID-N>   newest

Invariants:
    - A snapshot name only appears once its archive is complete
    - Scratch directories and partial files are removed on every path
    - Rollback argument errors never touch the database
    - A corrupt snapshot archive never touches the database

Known gap:
    The drop transaction commits before the import starts. A crash
    between the two leaves the database empty. Rolling back again
    recovers it, since snapshots are never modified by rollback.

How to change safely:
    - Keep snapshot names sortable; listing order is chronological order
    - Test restore from old snapshots before changing the archive layout
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from ..engine.base import Engine, quote_literal
from ..engine.catalog import drop_statements
from ..errors import InvalidArgumentError, NotFoundError, StorageError
from . import archive
from .directory import list_entries, rotate
from .ids import SnapshotIdGenerator, UlidGenerator, timestamp_ms

logger = logging.getLogger(__name__)


@dataclass
class SnapshotInfo:
    """Information about a snapshot.

    Attributes:
        snapshot_id: Snapshot file name (ULID)
        path: Snapshot file path
        size_bytes: Archive size in bytes
        created_at_ms: Creation timestamp decoded from the ULID (Unix ms),
            None for names that are not ULIDs
        checksum: SHA-256 of the archive; only set for snapshots taken by
            this controller instance
    """

    snapshot_id: str
    path: Path
    size_bytes: int
    created_at_ms: int | None
    checksum: str | None = None


def _compute_checksum(file_path: Path) -> str:
    """Compute SHA-256 checksum of file."""
    sha256 = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)
    return f"sha256:{sha256.hexdigest()}"


def describe_snapshot(snapshot_dir: Path, name: str) -> SnapshotInfo:
    """Build SnapshotInfo for an existing snapshot file."""
    path = snapshot_dir / name
    try:
        size = path.stat().st_size
    except OSError as e:
        raise StorageError(f"Failed to stat snapshot {path}: {e}", path=str(path)) from e
    return SnapshotInfo(
        snapshot_id=name,
        path=path,
        size_bytes=size,
        created_at_ms=timestamp_ms(name),
    )


def list_snapshots(snapshot_dir: Path | str) -> list[SnapshotInfo]:
    """List the snapshots in ``snapshot_dir``, oldest first.

    Raises:
        NotFoundError: If the directory does not exist
    """
    directory = Path(snapshot_dir)
    return [describe_snapshot(directory, name) for name in list_entries(directory)]


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove partial snapshot {path}: {e}")


class SnapshotController:
    """Creates, rotates and restores snapshots of one database.

    The controller is synchronous and not thread safe; the Client calls it
    while holding its gate.

    Attributes:
        engine: Engine holding the live database
        snapshot_dir: Directory of snapshot archives
        retention: Number of snapshots kept (N)
        id_generator: Source of snapshot names
        scratch_dir: Parent for scratch directories (system temp if None)

    Example:
        >>> controller = SnapshotController(engine, Path("/data/snapshot"), retention=3)
        >>> info = controller.take_snapshot()
        >>> controller.rollback(1)
    """

    def __init__(
        self,
        engine: Engine,
        snapshot_dir: Path | str,
        retention: int,
        id_generator: SnapshotIdGenerator | None = None,
        scratch_dir: Path | str | None = None,
    ) -> None:
        if retention < 1:
            raise InvalidArgumentError(
                f"retention must be at least 1, got {retention}",
                argument="retention",
                value=retention,
            )
        self.engine = engine
        self.snapshot_dir = Path(snapshot_dir)
        self.retention = retention
        self.id_generator = id_generator or UlidGenerator()
        self.scratch_dir = str(scratch_dir) if scratch_dir is not None else None

    @contextmanager
    def _scratch(self, purpose: str) -> Iterator[Path]:
        """Yield a private scratch directory, removed on exit."""
        try:
            path = Path(tempfile.mkdtemp(prefix=f"quack-{purpose}-", dir=self.scratch_dir))
        except OSError as e:
            raise StorageError(f"Failed to create scratch directory: {e}", path=self.scratch_dir) from e
        try:
            yield path
        finally:
            try:
                shutil.rmtree(path)
            except OSError as e:
                logger.warning(f"Failed to clean up scratch directory {path}: {e}")

    def list_snapshots(self) -> list[SnapshotInfo]:
        """List retained snapshots, oldest first.

        Raises:
            NotFoundError: If the snapshot directory does not exist
        """
        return list_snapshots(self.snapshot_dir)

    def take_snapshot(self) -> SnapshotInfo:
        """Export the database into a new snapshot and rotate.

        Returns:
            SnapshotInfo of the new snapshot

        Raises:
            EngineError: If EXPORT DATABASE fails
            StorageError: If the archive cannot be written or rotation fails
        """
        existing = list_entries(self.snapshot_dir)
        snapshot_id = self.id_generator.new_id(after=existing[-1] if existing else None)
        target = self.snapshot_dir / snapshot_id

        # The partial file lives beside the snapshot directory so the final
        # rename stays on one filesystem and listings never see it.
        try:
            fd, partial_name = tempfile.mkstemp(
                prefix=".snapshot-", suffix=".partial", dir=self.snapshot_dir.parent
            )
        except OSError as e:
            raise StorageError(f"Failed to create partial snapshot: {e}", path=str(target)) from e
        partial = Path(partial_name)

        try:
            with os.fdopen(fd, "wb") as stream, self._scratch("export") as scratch:
                self.engine.execute(f"EXPORT DATABASE {quote_literal(str(scratch))} (FORMAT JSON)")
                files = archive.dump(scratch, stream)
            checksum = _compute_checksum(partial)
            size = partial.stat().st_size
            os.replace(partial, target)
        except OSError as e:
            _remove_quietly(partial)
            raise StorageError(f"Failed to write snapshot {target}: {e}", path=str(target)) from e
        except BaseException:
            _remove_quietly(partial)
            raise

        logger.info(
            "Created snapshot",
            extra={
                "snapshot_id": snapshot_id,
                "files": files,
                "size_bytes": size,
                "checksum": checksum,
            },
        )

        rotate(self.snapshot_dir, self.retention)

        return SnapshotInfo(
            snapshot_id=snapshot_id,
            path=target,
            size_bytes=size,
            created_at_ms=timestamp_ms(snapshot_id),
            checksum=checksum,
        )

    def rollback(self, n: int) -> SnapshotInfo:
        """Replace the live database with the n-th most recent snapshot.

        Args:
            n: 1-based offset from the newest snapshot

        Returns:
            SnapshotInfo of the snapshot that was restored

        Raises:
            InvalidArgumentError: If n is not in 1..retention
            NotFoundError: If fewer than n snapshots exist
            EngineError: If dropping, committing or importing fails
            CorruptArchiveError: If the snapshot archive is malformed
        """
        if not 0 < n <= self.retention:
            raise InvalidArgumentError(
                f"cannot roll back to snapshot {n} (retention: {self.retention})",
                argument="n",
                value=n,
            )

        names = list_entries(self.snapshot_dir)
        if not names:
            raise NotFoundError("No snapshot to roll back to", resource=str(self.snapshot_dir))
        if n > len(names):
            raise NotFoundError(
                f"cannot roll back to snapshot {n}: only {len(names)} retained",
                resource=str(self.snapshot_dir),
            )

        snapshot = describe_snapshot(self.snapshot_dir, names[len(names) - n])

        with self._scratch("import") as scratch:
            # A bad archive must fail before anything is dropped
            archive.load(snapshot.path, scratch)

            statements = drop_statements(self.engine)
            with self.engine.begin_transaction() as txn:
                for statement in statements:
                    txn.execute(statement)
                txn.commit()
            logger.info(f"Dropped {len(statements)} objects for rollback")

            self.engine.execute(f"IMPORT DATABASE {quote_literal(str(scratch))}")

        logger.info(
            "Rolled back to snapshot",
            extra={"snapshot_id": snapshot.snapshot_id, "n": n},
        )
        return snapshot
