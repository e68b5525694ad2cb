"""
quack-vault Test Suite.

This package contains:
- unit/: Unit tests (filesystem helpers, engine wrapper, controller, ingestion)
- integration/: Client tests against a real DuckDB database file
"""
