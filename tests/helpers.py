"""Helpers shared by the quack-vault tests."""

import json


class SequenceIdGenerator:
    """Deterministic snapshot names: 000001, 000002, ..."""

    def __init__(self, start: int = 1):
        self._next = start
        self.issued = []

    def new_id(self, after=None):
        value = f"{self._next:06d}"
        self._next += 1
        self.issued.append(value)
        return value


def records(*rows: dict) -> bytes:
    """Encode rows as newline-delimited JSON."""
    return b"".join(json.dumps(row).encode("utf-8") + b"\n" for row in rows)


def count_rows(engine, table: str) -> int:
    """Row count of ``table`` read through the engine."""
    with engine.query(f'SELECT count(*) FROM "{table}"') as cursor:
        return cursor.fetchone()[0]
