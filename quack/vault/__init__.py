"""
quack-vault - snapshot, rotation and rollback for an embedded DuckDB database.

This package wraps a single DuckDB database file with:
- Idempotent bulk JSON ingestion (create on first insert, append after)
- Exact-duplicate collapsing of tables
- A snapshot on every close, keeping the N most recent
- Rollback of the live database to any retained snapshot

Architecture:
    ┌──────────┐     ┌──────────────────┐     ┌──────────────────┐
    │  Caller  │────▶│  Client (gate)   │────▶│ DuckDB database  │
    └──────────┘     └────────┬─────────┘     └──────────────────┘
                              │
                 ┌────────────┴────────────┐
                 ▼                         ▼
          ┌─────────────┐         ┌────────────────────┐
          │  Ingestion  │         │ SnapshotController │
          └─────────────┘         └─────────┬──────────┘
                                           │
                              ┌────────────┴────────────┐
                              ▼                         ▼
                        ┌──────────┐             ┌───────────┐
                        │ archive  │             │ directory │
                        │  (zip)   │             │ (rotate)  │
                        └──────────┘             └───────────┘

Invariants:
    - One operation at a time per client
    - Snapshot names sort chronologically
    - Temporary files and scratch directories never outlive a call

How to change safely:
    - Keep the snapshot archive loadable by IMPORT DATABASE
    - Route every new operation through Client.run_exclusive()
"""

from ._version import __version__
from .client import Client, open_client
from .config import LoggingConfig, StoreConfig, VaultConfig
from .errors import (
    ClientClosedError,
    CorruptArchiveError,
    EngineError,
    InvalidArgumentError,
    NotFoundError,
    StorageError,
    TableNotFoundError,
    VaultError,
)
from .snapshot import SnapshotInfo

__all__ = [
    "__version__",
    "Client",
    "open_client",
    "SnapshotInfo",
    # Configuration
    "StoreConfig",
    "LoggingConfig",
    "VaultConfig",
    # Errors
    "VaultError",
    "StorageError",
    "CorruptArchiveError",
    "EngineError",
    "InvalidArgumentError",
    "NotFoundError",
    "TableNotFoundError",
    "ClientClosedError",
]
