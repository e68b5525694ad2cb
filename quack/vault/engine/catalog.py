"""
Catalog lookups issued through the engine protocol.

``drop_statements`` covers every kind of object EXPORT DATABASE writes out
(schemas, views, tables, macros, sequences), so a database emptied with it
can take an IMPORT DATABASE without name clashes.
"""

from __future__ import annotations

from .base import Engine, quote_identifier

_LIST_TABLES_SQL = """
    SELECT table_name
    FROM duckdb_tables()
    WHERE database_name = current_database()
      AND schema_name = 'main'
      AND NOT temporary
    ORDER BY table_name
"""

_LIST_VIEWS_SQL = """
    SELECT view_name
    FROM duckdb_views()
    WHERE database_name = current_database()
      AND schema_name = 'main'
      AND NOT internal
      AND NOT temporary
    ORDER BY view_name
"""

_LIST_SCHEMAS_SQL = """
    SELECT schema_name
    FROM duckdb_schemas()
    WHERE database_name = current_database()
      AND NOT internal
      AND schema_name NOT IN ('main', 'information_schema', 'pg_catalog')
    ORDER BY schema_name
"""

_LIST_MACROS_SQL = """
    SELECT DISTINCT function_name, function_type
    FROM duckdb_functions()
    WHERE database_name = current_database()
      AND schema_name = 'main'
      AND function_type IN ('macro', 'table_macro')
      AND NOT internal
    ORDER BY function_name
"""

_LIST_SEQUENCES_SQL = """
    SELECT sequence_name
    FROM duckdb_sequences()
    WHERE database_name = current_database()
      AND schema_name = 'main'
      AND NOT temporary
    ORDER BY sequence_name
"""


def _names(engine: Engine, statement: str) -> list[str]:
    with engine.query(statement) as cursor:
        return [row[0] for row in cursor.fetchall()]


def list_tables(engine: Engine) -> list[str]:
    """Names of the user tables in the database, sorted."""
    return _names(engine, _LIST_TABLES_SQL)


def list_views(engine: Engine) -> list[str]:
    """Names of the user views in the database, sorted."""
    return _names(engine, _LIST_VIEWS_SQL)


def table_exists(engine: Engine, table: str) -> bool:
    """Whether ``table`` exists. Names compare case-insensitively, like DuckDB identifiers."""
    wanted = table.lower()
    return any(name.lower() == wanted for name in list_tables(engine))


def drop_statements(engine: Engine) -> list[str]:
    """DROP statements removing every user object, in dependency-safe order.

    Extra schemas go first (with their contents), then views, tables,
    macros and finally sequences, which table defaults may reference.
    """
    statements = [
        f"DROP SCHEMA {quote_identifier(name)} CASCADE"
        for name in _names(engine, _LIST_SCHEMAS_SQL)
    ]
    statements += [f"DROP VIEW {quote_identifier(name)}" for name in list_views(engine)]
    statements += [f"DROP TABLE {quote_identifier(name)}" for name in list_tables(engine)]

    with engine.query(_LIST_MACROS_SQL) as cursor:
        for name, kind in cursor.fetchall():
            keyword = "MACRO TABLE" if kind == "table_macro" else "MACRO"
            statements.append(f"DROP {keyword} {quote_identifier(name)}")

    statements += [
        f"DROP SEQUENCE {quote_identifier(name)}"
        for name in _names(engine, _LIST_SEQUENCES_SQL)
    ]
    return statements
