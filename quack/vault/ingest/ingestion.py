"""
Bulk JSON ingestion and deduplication.

Incoming records are first staged into a temporary file so the engine's
bulk loader reads from stable, seekable storage instead of a live stream.
The first insert into a table creates it with a schema inferred from the
records; later inserts append with ``COPY``.

Invariants:
    - The staging file is removed on every exit path
    - Table existence is looked up in the catalog on every call
    - deduplicate() replaces the table in one statement or not at all

How to change safely:
    - Keep the record format readable by read_json_auto and COPY (FORMAT json)
    - Test schema mismatch paths after upgrading duckdb
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

from ..engine.base import Engine, quote_identifier, quote_literal
from ..engine.catalog import table_exists
from ..errors import InvalidArgumentError, StorageError

logger = logging.getLogger(__name__)


def _validate_table(table: str) -> None:
    if not table or not table.strip():
        raise InvalidArgumentError("table name must not be empty", argument="table", value=table)


def _stage(records: BinaryIO, scratch_dir: str | None) -> tuple[Path, int]:
    """Copy ``records`` into a temporary file.

    Returns:
        Path of the staged file and its size in bytes
    """
    try:
        fd, name = tempfile.mkstemp(prefix="quack-insert-", suffix=".json", dir=scratch_dir)
    except OSError as e:
        raise StorageError(f"Failed to create staging file: {e}", path=scratch_dir) from e

    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as staged:
            shutil.copyfileobj(records, staged)
        return path, path.stat().st_size
    except OSError as e:
        _unstage(path)
        raise StorageError(f"Failed to stage records: {e}", path=name) from e
    except BaseException:
        _unstage(path)
        raise


def _unstage(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove staging file {path}: {e}")


def insert(
    engine: Engine,
    table: str,
    records: BinaryIO | bytes,
    scratch_dir: str | None = None,
) -> None:
    """Insert JSON records into ``table``, creating it on first use.

    Args:
        engine: Engine holding the database
        table: Target table name
        records: Newline-delimited or concatenated JSON objects
        scratch_dir: Directory for the staging file (system temp if None)

    Raises:
        InvalidArgumentError: If the table name is empty
        StorageError: If staging fails
        EngineError: If the records cannot be loaded (malformed JSON,
            schema mismatch with an existing table)
    """
    _validate_table(table)
    if isinstance(records, (bytes, bytearray)):
        records = io.BytesIO(records)

    path, size = _stage(records, scratch_dir)
    try:
        if size == 0:
            logger.debug(f"Nothing to insert into {table}: empty record stream")
            return

        source = quote_literal(str(path))
        if table_exists(engine, table):
            engine.execute(f"COPY {quote_identifier(table)} FROM {source} (FORMAT json)")
            action = "appended"
        else:
            engine.execute(
                f"CREATE TABLE {quote_identifier(table)} AS SELECT * FROM read_json_auto({source})"
            )
            action = "created"
        logger.info(
            f"Inserted records into {table}",
            extra={"table": table, "action": action, "staged_bytes": size},
        )
    finally:
        _unstage(path)


def deduplicate(engine: Engine, table: str) -> None:
    """Collapse exact duplicate rows of ``table``.

    Raises:
        InvalidArgumentError: If the table name is empty
        TableNotFoundError: If the table does not exist
        EngineError: For any other engine failure
    """
    _validate_table(table)
    name = quote_identifier(table)
    engine.execute(f"CREATE OR REPLACE TABLE {name} AS SELECT DISTINCT * FROM {name}")
    logger.info(f"Deduplicated table {table}", extra={"table": table})
