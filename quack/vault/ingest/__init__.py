"""
Ingestion module for quack-vault.

This module handles:
- Staging JSON record streams to temporary files
- Create-or-append bulk loads into engine tables
- Exact-duplicate collapsing of a table

Invariants:
    - Staging files never outlive the call that created them
    - Schema is inferred by the engine on first insert, never cached
"""

from .ingestion import deduplicate, insert

__all__ = ["insert", "deduplicate"]
