"""
Post-connect configurators for DuckDB connections.

A configurator is a callable that receives the freshly opened DuckDB
connection before the client is handed to the caller. Configurators run in
order; the first one to raise aborts client construction.
"""

from __future__ import annotations

from collections.abc import Callable

import duckdb

from .base import quote_literal

Configurator = Callable[[duckdb.DuckDBPyConnection], None]


def settings_configurator(
    threads: int | None = None,
    memory_limit: str | None = None,
) -> Configurator | None:
    """Build a configurator applying engine settings with ``SET``.

    Args:
        threads: DuckDB worker threads
        memory_limit: DuckDB memory limit (e.g. "2GB")

    Returns:
        Configurator, or None when no setting is given
    """
    statements = []
    if threads is not None:
        statements.append(f"SET threads = {int(threads)}")
    if memory_limit is not None:
        statements.append(f"SET memory_limit = {quote_literal(memory_limit)}")
    if not statements:
        return None

    def configure(connection: duckdb.DuckDBPyConnection) -> None:
        for statement in statements:
            connection.execute(statement)

    return configure
