"""
Monotonic, lexicographically sortable snapshot identifiers.

Snapshot names are ULIDs: 48 bits of millisecond timestamp followed by 80
random bits, Crockford base32 encoded, so string order is time order.

Invariants:
    - new_id() is strictly greater than every ID it issued before
    - new_id(after=x) is strictly greater than x when x is a valid ULID

How to change safely:
    - Any replacement generator must keep names sortable as plain strings
"""

from __future__ import annotations

import logging
import time
from abc import abstractmethod
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from ulid import ULID

logger = logging.getLogger(__name__)


@runtime_checkable
class SnapshotIdGenerator(Protocol):
    """Source of snapshot names."""

    @abstractmethod
    def new_id(self, after: str | None = None) -> str:
        """Return a fresh ID, strictly greater than ``after`` if given."""
        ...


class UlidGenerator:
    """ULID-based generator.

    When the clock has not moved past the floor (the last issued ID or the
    newest existing snapshot), the floor ULID is incremented instead, so IDs
    stay strictly increasing within a millisecond and across restarts.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last: ULID | None = None

    def new_id(self, after: str | None = None) -> str:
        floor = self._last
        if after is not None:
            try:
                existing = ULID.from_str(after)
            except ValueError:
                logger.warning(f"Ignoring non-ULID snapshot name {after!r} when ordering IDs")
            else:
                if floor is None or existing > floor:
                    floor = existing

        candidate = ULID.from_timestamp(self._clock())
        if floor is not None and candidate <= floor:
            candidate = ULID.from_int(int(floor) + 1)

        self._last = candidate
        return str(candidate)


def timestamp_ms(snapshot_id: str) -> int | None:
    """Creation time encoded in a ULID snapshot name, or None for other names."""
    try:
        return ULID.from_str(snapshot_id).milliseconds
    except ValueError:
        return None
