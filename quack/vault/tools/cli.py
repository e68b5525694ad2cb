"""
Command-line tool for quack-vault.

Usage:
    quack-vault [--root DIR] [--retention N] snapshots
    quack-vault [--root DIR] [--retention N] insert TABLE [FILE]
    quack-vault [--root DIR] [--retention N] query SQL
    quack-vault [--root DIR] [--retention N] dedup TABLE
    quack-vault [--root DIR] [--retention N] rollback N

Defaults come from the environment (see config.py). Every command except
``snapshots`` opens the database and closes it afterwards, which takes a
snapshot like any other client close. A command that fails releases the
database without a snapshot.

Invariants:
    - Exit status 0 on success, 1 on any VaultError
    - Snapshot listing never opens the database
    - Failed commands never add or rotate snapshots

How to change safely:
    - Add new commands as subparsers; keep existing flags stable
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from ..client import Client
from ..config import VaultConfig
from ..errors import VaultError
from ..logging_setup import setup_logging
from ..snapshot import list_snapshots

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quack-vault",
        description="Manage a DuckDB database with rotating snapshots and rollback",
    )
    parser.add_argument("--root", help="Root directory (default: $QUACK_ROOT_DIR)")
    parser.add_argument("--retention", type=int, help="Snapshots kept (default: $QUACK_RETENTION)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("snapshots", help="List retained snapshots")

    insert = commands.add_parser("insert", help="Insert JSON records into a table")
    insert.add_argument("table")
    insert.add_argument("file", nargs="?", help="JSON file (default: stdin)")

    query = commands.add_parser("query", help="Run a statement and print its rows")
    query.add_argument("sql")

    dedup = commands.add_parser("dedup", help="Remove duplicate rows from a table")
    dedup.add_argument("table")

    rollback = commands.add_parser("rollback", help="Restore the n-th most recent snapshot")
    rollback.add_argument("n", type=int)
    return parser


def _format_ts(created_at_ms: int | None) -> str:
    if created_at_ms is None:
        return "-"
    return datetime.fromtimestamp(created_at_ms / 1000, tz=UTC).isoformat()


def _list_snapshots(config: VaultConfig) -> None:
    # Listing is read-only filesystem work: no client, no final snapshot.
    snapshot_dir = config.store.snapshot_dir
    snapshots = list_snapshots(snapshot_dir) if snapshot_dir.exists() else []
    if not snapshots:
        print("No snapshots")
        return
    # Numbered the way rollback counts them: 1 is the newest
    for index, info in enumerate(reversed(snapshots), start=1):
        print(f"{index}\t{info.snapshot_id}\t{info.size_bytes}\t{_format_ts(info.created_at_ms)}")


async def _with_client(config: VaultConfig, action: Callable[[Client], Awaitable[Any]]) -> None:
    client = await Client.from_config(config.store)
    try:
        await action(client)
    except BaseException:
        # A failed command may leave a half-applied state; keep it out of the history
        try:
            await client.abort()
        except VaultError as close_error:
            logger.warning(f"Close after failed command also failed: {close_error}")
        raise
    snapshot = await client.close()
    print(f"Snapshot: {snapshot.snapshot_id}")


async def _insert(client: Client, table: str, file: str | None) -> None:
    if file is None:
        await client.insert(table, sys.stdin.buffer)
    else:
        with open(file, "rb") as records:
            await client.insert(table, records)
    print(f"Inserted into {table}")


async def _query(client: Client, sql: str) -> None:
    with await client.query(sql) as cursor:
        print("\t".join(cursor.columns))
        for row in cursor:
            print("\t".join("" if value is None else str(value) for value in row))


async def _dedup(client: Client, table: str) -> None:
    await client.deduplicate(table)
    print(f"Deduplicated {table}")


async def _rollback(client: Client, n: int) -> None:
    info = await client.rollback_snapshot(n)
    print(f"Rolled back to {info.snapshot_id}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = _build_parser().parse_args(argv)

    try:
        config = VaultConfig.from_env()
        overrides: dict[str, Any] = {}
        if args.root is not None:
            overrides["root_dir"] = args.root
        if args.retention is not None:
            overrides["retention"] = args.retention
        config.store = replace(config.store, **overrides)
        config.validate()
    except (VaultError, ValueError) as e:
        print(f"Invalid configuration: {e}")
        sys.exit(1)

    if args.verbose:
        config.logging = replace(config.logging, log_level="DEBUG")
    setup_logging(config.logging)
    config.log_config()

    actions: dict[str, Callable[[Client], Awaitable[Any]]] = {
        "insert": lambda client: _insert(client, args.table, args.file),
        "query": lambda client: _query(client, args.sql),
        "dedup": lambda client: _dedup(client, args.table),
        "rollback": lambda client: _rollback(client, args.n),
    }

    try:
        if args.command == "snapshots":
            _list_snapshots(config)
        else:
            asyncio.run(_with_client(config, actions[args.command]))
    except VaultError as e:
        print(f"{args.command} failed: {e.message}")
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
