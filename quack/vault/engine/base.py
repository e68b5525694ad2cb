"""
Base protocol for the embedded engine abstraction.

The vault never reaches into the engine beyond this narrow capability
interface: execute a statement, run a query that returns a cursor, open a
transaction, interrupt the running statement, close. This keeps DuckDB
swappable and lets tests substitute a fake.

Invariants:
    - Every engine failure is raised as an EngineError subclass
    - A ResultCursor stays readable after later statements run on the engine
    - A Transaction that is neither committed nor rolled back is rolled back
      when its context exits

How to change safely:
    - Protocol changes require updating DuckDBEngine and the test fakes
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterator, Sequence
from typing import Any, Protocol, runtime_checkable


def quote_identifier(name: str) -> str:
    """Quote a table or column name for interpolation into SQL."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote a string (typically a filesystem path) as a SQL literal."""
    return "'" + value.replace("'", "''") + "'"


@runtime_checkable
class ResultCursor(Protocol):
    """Rows produced by a query.

    The cursor is owned by the caller, who must close it.
    """

    @property
    @abstractmethod
    def columns(self) -> list[str]:
        """Column names of the result."""
        ...

    @abstractmethod
    def fetchone(self) -> tuple[Any, ...] | None: ...

    @abstractmethod
    def fetchmany(self, size: int = 1024) -> list[tuple[Any, ...]]: ...

    @abstractmethod
    def fetchall(self) -> list[tuple[Any, ...]]: ...

    @abstractmethod
    def close(self) -> None: ...

    def __iter__(self) -> Iterator[tuple[Any, ...]]: ...


@runtime_checkable
class Transaction(Protocol):
    """An open engine transaction.

    Example:
        >>> with engine.begin_transaction() as txn:
        ...     txn.execute('DROP TABLE "t"')
        ...     txn.commit()
    """

    @abstractmethod
    def execute(self, statement: str, parameters: Sequence[Any] | None = None) -> None:
        """Execute a statement inside the transaction.

        Raises:
            EngineError: If the statement fails
        """
        ...

    @abstractmethod
    def commit(self) -> None:
        """Commit the transaction.

        If the commit fails the transaction is rolled back before the error
        is raised.

        Raises:
            EngineError: If commit fails
        """
        ...

    @abstractmethod
    def rollback(self) -> None:
        """Roll back the transaction. No-op once committed or rolled back."""
        ...

    def __enter__(self) -> Transaction: ...

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None: ...


@runtime_checkable
class Engine(Protocol):
    """Protocol for the embedded analytical engine.

    Statements are opaque to the vault. The engine is synchronous; callers
    that need concurrency run it in an executor and serialize access.

    Example:
        >>> engine = DuckDBEngine.connect("/data/database.duckdb")
        >>> engine.execute("CREATE TABLE t AS SELECT 1 AS x")
        >>> with engine.query("SELECT count(*) FROM t") as cursor:
        ...     print(cursor.fetchone())
    """

    @abstractmethod
    def execute(self, statement: str, parameters: Sequence[Any] | None = None) -> None:
        """Execute a statement and discard any result.

        Raises:
            TableNotFoundError: If the statement references a missing table
            EngineError: For any other engine failure
        """
        ...

    @abstractmethod
    def query(self, statement: str, parameters: Sequence[Any] | None = None) -> ResultCursor:
        """Execute a statement and return a cursor over its rows.

        Raises:
            TableNotFoundError: If the statement references a missing table
            EngineError: For any other engine failure
        """
        ...

    @abstractmethod
    def begin_transaction(self) -> Transaction:
        """Open a transaction on the engine connection.

        Raises:
            EngineError: If the transaction cannot be started
        """
        ...

    @abstractmethod
    def interrupt(self) -> None:
        """Ask the engine to abandon the statement currently running."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the engine handle.

        Raises:
            EngineError: If the engine fails to close cleanly
        """
        ...
