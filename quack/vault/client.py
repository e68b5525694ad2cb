"""
Client for a quack-vault database.

The Client owns the single engine handle, the retention limit and the gate
that serializes every public operation. It composes the ingestion functions
and the snapshot controller; it adds no storage logic of its own.

Lifecycle:
    client = await open_client("/data/quack", retention=3)
    await client.insert("events", records)
    await client.close()   # takes the final snapshot, then releases the engine

Invariants:
    - At most one operation uses the engine at any time
    - The gate is held until the engine call has finished, even when the
      calling task is cancelled
    - close() snapshots before it releases the engine; nothing closes
      implicitly
    - query() releases the gate once the statement is submitted; the
      returned cursor runs on its own DuckDB cursor

How to change safely:
    - New operations must go through run_exclusive()
    - Never hold the gate across user iteration of a result cursor
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, BinaryIO, TypeVar

from .config import StoreConfig
from .engine import DuckDBEngine, Engine, ResultCursor
from .engine.settings import Configurator, settings_configurator
from .errors import ClientClosedError, StorageError
from .ingest import ingestion
from .snapshot import SnapshotController, SnapshotIdGenerator, SnapshotInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _open_engine(config: StoreConfig, configurators: Sequence[Configurator]) -> DuckDBEngine:
    """Create the directories, open the database and configure the connection."""
    try:
        Path(config.root_dir).mkdir(parents=True, exist_ok=True)
        config.snapshot_dir.mkdir(exist_ok=True)
    except OSError as e:
        raise StorageError(f"Failed to create vault directories: {e}", path=config.root_dir) from e

    engine = DuckDBEngine.connect(config.database_path)
    settings = settings_configurator(threads=config.threads, memory_limit=config.memory_limit)
    engine.configure(([settings] if settings else []) + list(configurators))
    return engine


class Client:
    """Gated handle on one database and its snapshot directory.

    Operations are coroutines; engine work runs in the default executor.
    The client is bound to the event loop it is first used on.

    Attributes:
        config: Store configuration
        retention: Number of snapshots kept (N)

    Example:
        >>> client = await open_client("/data/quack", 3)
        >>> await client.insert("t", b'{"name": "a", "value": 10}')
        >>> with await client.query("SELECT count(*) FROM t") as cursor:
        ...     print(cursor.fetchone())
        >>> await client.close()
    """

    def __init__(
        self,
        engine: Engine,
        config: StoreConfig,
        id_generator: SnapshotIdGenerator | None = None,
    ) -> None:
        self.config = config
        self.retention = config.retention
        self._engine = engine
        self._snapshots = SnapshotController(
            engine,
            config.snapshot_dir,
            config.retention,
            id_generator=id_generator,
            scratch_dir=config.scratch_dir,
        )
        self._gate = asyncio.Lock()
        self._closed = False

    @classmethod
    async def from_config(
        cls,
        config: StoreConfig,
        *configurators: Configurator,
        id_generator: SnapshotIdGenerator | None = None,
    ) -> Client:
        """Open a client for ``config``.

        Raises:
            InvalidArgumentError: If the configuration is invalid
            StorageError: If the directories cannot be created
            EngineError: If the database cannot be opened or a
                configurator fails with a DuckDB error
        """
        config.validate()
        loop = asyncio.get_running_loop()
        engine = await loop.run_in_executor(
            None, functools.partial(_open_engine, config, configurators)
        )
        logger.info(
            "Opened vault",
            extra={"root_dir": config.root_dir, "retention": config.retention},
        )
        return cls(engine, config, id_generator=id_generator)

    @property
    def root_dir(self) -> Path:
        return Path(self.config.root_dir)

    @property
    def snapshot_dir(self) -> Path:
        return self.config.snapshot_dir

    @property
    def closed(self) -> bool:
        return self._closed

    @asynccontextmanager
    async def exclusive_access(self) -> AsyncIterator[Engine]:
        """Hold the gate and yield the engine.

        Engine calls made directly inside the block run on the event loop
        thread; prefer run_exclusive() for anything slow.

        Raises:
            ClientClosedError: If the client has been closed
        """
        async with self._gate:
            if self._closed:
                raise ClientClosedError()
            yield self._engine

    async def _call(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking engine call in the executor.

        On cancellation the running statement is interrupted and the call
        is awaited to completion before CancelledError propagates, so the
        gate is never released while the engine is still busy.
        """
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, functools.partial(fn, *args))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            self._engine.interrupt()
            try:
                await future
            except Exception as e:
                logger.debug(f"Interrupted engine call ended with: {e}")
            raise

    async def run_exclusive(self, fn: Callable[[Engine], T]) -> T:
        """Run ``fn(engine)`` with exclusive access to the engine.

        This is the gate every public operation goes through. ``fn`` runs in
        the executor thread and must not keep references to the engine.

        Raises:
            ClientClosedError: If the client has been closed
        """
        async with self.exclusive_access() as engine:
            return await self._call(fn, engine)

    async def insert(self, table: str, records: BinaryIO | bytes) -> None:
        """Insert JSON records, creating the table on first insert.

        Raises:
            StorageError: If staging the records fails
            EngineError: If the engine rejects the records
        """
        await self.run_exclusive(
            functools.partial(
                ingestion.insert,
                table=table,
                records=records,
                scratch_dir=self.config.scratch_dir,
            )
        )

    async def query(self, statement: str, parameters: Sequence[Any] | None = None) -> ResultCursor:
        """Run a statement and return a cursor over its rows.

        The gate is released once the statement has been submitted; the
        caller owns the cursor and must close it.
        """
        return await self.run_exclusive(lambda engine: engine.query(statement, parameters))

    async def deduplicate(self, table: str) -> None:
        """Collapse exact duplicate rows of ``table``.

        Raises:
            TableNotFoundError: If the table does not exist
        """
        await self.run_exclusive(functools.partial(ingestion.deduplicate, table=table))

    async def rollback_snapshot(self, n: int) -> SnapshotInfo:
        """Replace the database with the n-th most recent snapshot (1 = newest).

        Raises:
            InvalidArgumentError: If n is not in 1..retention
            NotFoundError: If fewer than n snapshots exist
        """
        return await self.run_exclusive(lambda _engine: self._snapshots.rollback(n))

    async def list_snapshots(self) -> list[SnapshotInfo]:
        """Retained snapshots, oldest first."""
        return await self.run_exclusive(lambda _engine: self._snapshots.list_snapshots())

    async def close(self) -> SnapshotInfo:
        """Take the final snapshot, rotate and release the engine.

        If the snapshot fails the client stays open and the error is raised.

        Returns:
            SnapshotInfo of the final snapshot

        Raises:
            ClientClosedError: If the client was already closed
        """
        async with self.exclusive_access() as engine:
            snapshot = await self._call(self._snapshots.take_snapshot)
            self._closed = True
            await self._call(engine.close)

        logger.info(
            "Closed vault",
            extra={"root_dir": self.config.root_dir, "snapshot_id": snapshot.snapshot_id},
        )
        return snapshot

    async def abort(self) -> None:
        """Release the engine without taking a snapshot.

        For callers abandoning a session after a failed operation, whose
        database state must not enter the snapshot history.

        Raises:
            ClientClosedError: If the client was already closed
        """
        async with self.exclusive_access() as engine:
            self._closed = True
            await self._call(engine.close)

        logger.warning("Closed vault without snapshot", extra={"root_dir": self.config.root_dir})


async def open_client(
    root_dir: Path | str,
    retention: int,
    *configurators: Configurator,
    scratch_dir: Path | str | None = None,
    id_generator: SnapshotIdGenerator | None = None,
) -> Client:
    """Open (or create) a vault under ``root_dir``.

    Args:
        root_dir: Directory for the database file and snapshot directory
        retention: Number of snapshots kept (N >= 1)
        configurators: Callables applied in order to the fresh DuckDB
            connection before the client is returned
        scratch_dir: Parent for staging files and scratch directories
        id_generator: Snapshot name source (ULIDs if None)

    Returns:
        Open Client; the caller must close it

    Raises:
        InvalidArgumentError: If retention is less than 1
        StorageError: If the directories cannot be created
        EngineError: If the database cannot be opened or configured
    """
    config = StoreConfig(
        root_dir=str(root_dir),
        retention=retention,
        scratch_dir=str(scratch_dir) if scratch_dir is not None else None,
    )
    return await Client.from_config(config, *configurators, id_generator=id_generator)
