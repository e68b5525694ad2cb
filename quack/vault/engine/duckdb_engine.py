"""
DuckDB implementation of the engine protocol.

One DuckDBEngine wraps one DuckDB connection to the on-disk database file.
Queries run on duplicate cursors (``connection.cursor()``) so a result set
handed to a caller survives later statements on the main connection.

Invariants:
    - duckdb.Error never escapes; it is wrapped as EngineError
    - Catalog errors about missing tables become TableNotFoundError
    - interrupt() reaches the main connection and every executing cursor

How to change safely:
    - Keep error mapping in _wrap_error so all call sites agree
    - Test cancellation paths after upgrading duckdb
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

import duckdb

from ..errors import EngineError, TableNotFoundError
from .settings import Configurator

logger = logging.getLogger(__name__)


def _wrap_error(exc: duckdb.Error, statement: str | None) -> EngineError:
    """Map a DuckDB exception onto the vault error hierarchy."""
    message = str(exc)
    if isinstance(exc, duckdb.CatalogException) and "does not exist" in message:
        return TableNotFoundError(message, statement=statement)
    return EngineError(message, statement=statement)


class DuckDBResult:
    """Cursor over the rows of a DuckDB query.

    Usable as a context manager and as an iterator of row tuples.
    """

    def __init__(self, cursor: duckdb.DuckDBPyConnection, statement: str) -> None:
        self._cursor = cursor
        self._statement = statement
        self._closed = False

    @property
    def columns(self) -> list[str]:
        description = self._cursor.description or []
        return [column[0] for column in description]

    def fetchone(self) -> tuple[Any, ...] | None:
        try:
            return self._cursor.fetchone()
        except duckdb.Error as e:
            raise _wrap_error(e, self._statement) from e

    def fetchmany(self, size: int = 1024) -> list[tuple[Any, ...]]:
        try:
            return self._cursor.fetchmany(size)
        except duckdb.Error as e:
            raise _wrap_error(e, self._statement) from e

    def fetchall(self) -> list[tuple[Any, ...]]:
        try:
            return self._cursor.fetchall()
        except duckdb.Error as e:
            raise _wrap_error(e, self._statement) from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        except duckdb.Error as e:
            raise _wrap_error(e, self._statement) from e

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        while True:
            rows = self.fetchmany()
            if not rows:
                return
            yield from rows

    def __enter__(self) -> DuckDBResult:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


class DuckDBTransaction:
    """Transaction on the main DuckDB connection."""

    def __init__(self, connection: duckdb.DuckDBPyConnection) -> None:
        self._conn = connection
        self._active = True

    def execute(self, statement: str, parameters: Sequence[Any] | None = None) -> None:
        logger.debug("Executing in transaction", extra={"statement": statement})
        try:
            if parameters is None:
                self._conn.execute(statement)
            else:
                self._conn.execute(statement, parameters)
        except duckdb.Error as e:
            raise _wrap_error(e, statement) from e

    def commit(self) -> None:
        try:
            self._conn.commit()
        except duckdb.Error as e:
            try:
                self.rollback()
            except EngineError as rollback_error:
                logger.warning(f"Rollback after failed commit also failed: {rollback_error}")
            raise EngineError(f"Commit failed: {e}", statement="COMMIT") from e
        self._active = False

    def rollback(self) -> None:
        if not self._active:
            return
        self._active = False
        try:
            self._conn.rollback()
        except duckdb.Error as e:
            raise _wrap_error(e, "ROLLBACK") from e

    def __enter__(self) -> DuckDBTransaction:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if not self._active:
            return
        if exc_type is None:
            self.rollback()
            return
        # Already unwinding: a failed rollback must not replace the original error
        try:
            self.rollback()
        except EngineError as rollback_error:
            logger.warning(f"Rollback after failure also failed: {rollback_error}")


class DuckDBEngine:
    """Engine backed by a DuckDB database file.

    Thread safety:
        Not safe for concurrent statements. The Client gate guarantees one
        operation at a time; only interrupt() may be called from another
        thread while a statement runs.

    Example:
        >>> engine = DuckDBEngine.connect(Path("/data/database.duckdb"))
        >>> engine.execute("CREATE TABLE t AS SELECT 42 AS answer")
        >>> engine.close()
    """

    def __init__(self, connection: duckdb.DuckDBPyConnection, path: Path | None = None) -> None:
        self._conn = connection
        self.path = path
        self._running: set[duckdb.DuckDBPyConnection] = set()
        self._running_lock = threading.Lock()

    @classmethod
    def connect(cls, path: Path | str) -> DuckDBEngine:
        """Open (or create) the database file.

        Raises:
            EngineError: If DuckDB cannot open the file
        """
        try:
            connection = duckdb.connect(str(path))
        except duckdb.Error as e:
            raise EngineError(f"Failed to open database {path}: {e}") from e
        logger.debug(f"Opened DuckDB database {path}")
        return cls(connection, Path(path))

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Raw DuckDB connection, handed to post-connect configurators."""
        return self._conn

    def configure(self, configurators: Sequence[Configurator]) -> None:
        """Apply post-connect configurators in order.

        The first failure closes the connection and is raised; DuckDB
        errors are wrapped as EngineError, anything else propagates as is.
        """
        try:
            for configure in configurators:
                configure(self._conn)
        except duckdb.Error as e:
            self._close_after_failure()
            raise EngineError(f"Connection configurator failed: {e}") from e
        except BaseException:
            self._close_after_failure()
            raise

    def _close_after_failure(self) -> None:
        try:
            self._conn.close()
        except duckdb.Error as e:
            logger.warning(f"Failed to close DuckDB database {self.path}: {e}")

    def execute(self, statement: str, parameters: Sequence[Any] | None = None) -> None:
        logger.debug("Executing statement", extra={"statement": statement})
        try:
            if parameters is None:
                self._conn.execute(statement)
            else:
                self._conn.execute(statement, parameters)
        except duckdb.Error as e:
            raise _wrap_error(e, statement) from e

    def query(self, statement: str, parameters: Sequence[Any] | None = None) -> DuckDBResult:
        logger.debug("Executing query", extra={"statement": statement})
        try:
            cursor = self._conn.cursor()
        except duckdb.Error as e:
            raise _wrap_error(e, statement) from e

        with self._running_lock:
            self._running.add(cursor)
        try:
            if parameters is None:
                cursor.execute(statement)
            else:
                cursor.execute(statement, parameters)
        except duckdb.Error as e:
            cursor.close()
            raise _wrap_error(e, statement) from e
        finally:
            with self._running_lock:
                self._running.discard(cursor)
        return DuckDBResult(cursor, statement)

    def begin_transaction(self) -> DuckDBTransaction:
        try:
            self._conn.begin()
        except duckdb.Error as e:
            raise _wrap_error(e, "BEGIN TRANSACTION") from e
        return DuckDBTransaction(self._conn)

    def interrupt(self) -> None:
        with self._running_lock:
            cursors = list(self._running)
        self._conn.interrupt()
        for cursor in cursors:
            cursor.interrupt()

    def close(self) -> None:
        try:
            self._conn.close()
        except duckdb.Error as e:
            raise _wrap_error(e, None) from e
        logger.debug(f"Closed DuckDB database {self.path}")
