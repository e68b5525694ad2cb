"""
Snapshot module for quack-vault.

This module handles point-in-time snapshots of the database for:
- Bounded history (the N most recent snapshots are kept)
- Rollback of the live database to a prior snapshot

Invariants:
    - Snapshots are immutable once written
    - Snapshot names sort chronologically
    - Only complete archives become visible in the snapshot directory
"""

from .archive import dump, load
from .controller import SnapshotController, SnapshotInfo, describe_snapshot, list_snapshots
from .directory import list_entries, rotate
from .ids import SnapshotIdGenerator, UlidGenerator, timestamp_ms

__all__ = [
    "SnapshotController",
    "SnapshotInfo",
    "describe_snapshot",
    "list_snapshots",
    "SnapshotIdGenerator",
    "UlidGenerator",
    "timestamp_ms",
    "list_entries",
    "rotate",
    "dump",
    "load",
]
