"""
Snapshot directory listing and rotation.

Pure filesystem logic: no engine access. Entries are ordered by name, which
for ULID-named snapshots is chronological order.

Invariants:
    - list_entries() is sorted ascending
    - rotate() only ever deletes the lexicographically smallest names
    - rotate() is idempotent; a second run with the same keep deletes nothing

How to change safely:
    - Never delete from the newest end, whatever the entry names look like
    - Partial rotation is tolerated; do not add undo logic
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ..errors import InvalidArgumentError, NotFoundError, StorageError

logger = logging.getLogger(__name__)


def list_entries(directory: Path | str) -> list[str]:
    """List entry names in ``directory``, sorted ascending.

    Raises:
        NotFoundError: If the directory does not exist
        StorageError: If the directory cannot be read
    """
    try:
        names = os.listdir(directory)
    except FileNotFoundError as e:
        raise NotFoundError(f"Directory not found: {directory}", resource=str(directory)) from e
    except OSError as e:
        raise StorageError(f"Failed to list {directory}: {e}", path=str(directory)) from e
    return sorted(names)


def rotate(directory: Path | str, keep: int) -> list[str]:
    """Delete all but the ``keep`` newest entries of ``directory``.

    Args:
        directory: Snapshot directory
        keep: Number of entries to retain

    Returns:
        Names that were deleted, oldest first

    Raises:
        InvalidArgumentError: If keep is less than 1
        NotFoundError: If the directory does not exist
        StorageError: If a deletion fails (earlier deletions stay done)
    """
    if keep < 1:
        raise InvalidArgumentError(f"keep must be at least 1, got {keep}", argument="keep", value=keep)

    names = list_entries(directory)
    if len(names) <= keep:
        return []

    expired = names[: len(names) - keep]
    for name in expired:
        path = Path(directory) / name
        try:
            path.unlink()
        except FileNotFoundError:
            # Already gone; deletion is idempotent
            continue
        except OSError as e:
            raise StorageError(f"Failed to delete snapshot {path}: {e}", path=str(path)) from e
        logger.debug(f"Deleted expired snapshot {name}")

    logger.info(
        "Rotated snapshots",
        extra={"directory": str(directory), "kept": keep, "deleted": len(expired)},
    )
    return expired
