"""
Embedded engine abstraction for quack-vault.

This module provides the narrow capability interface the vault uses to talk
to its analytical engine, and the DuckDB implementation of it:
- Engine / Transaction / ResultCursor protocols
- DuckDBEngine (production)
- Catalog lookups and post-connect configurators

Invariants:
    - The vault issues opaque statements; it holds no cached schema
    - Engine failures surface as EngineError subclasses

How to change safely:
    - New engines must implement the Engine protocol
    - Keep statements portable to DuckDB's EXPORT/IMPORT DATABASE format
"""

from .base import Engine, ResultCursor, Transaction, quote_identifier, quote_literal
from .catalog import drop_statements, list_tables, list_views, table_exists
from .duckdb_engine import DuckDBEngine, DuckDBResult, DuckDBTransaction
from .settings import Configurator, settings_configurator

__all__ = [
    # Protocols
    "Engine",
    "ResultCursor",
    "Transaction",
    # Implementation
    "DuckDBEngine",
    "DuckDBResult",
    "DuckDBTransaction",
    # Helpers
    "Configurator",
    "settings_configurator",
    "list_tables",
    "list_views",
    "drop_statements",
    "table_exists",
    "quote_identifier",
    "quote_literal",
]
