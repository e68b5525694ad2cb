"""Shared fixtures for the quack-vault test suite."""

import pytest

from quack.vault.engine import DuckDBEngine
from tests.helpers import SequenceIdGenerator


@pytest.fixture
def id_generator():
    """Deterministic snapshot name source."""
    return SequenceIdGenerator()


@pytest.fixture
def engine(tmp_path):
    """DuckDB engine on a fresh database file."""
    engine = DuckDBEngine.connect(tmp_path / "database.duckdb")
    yield engine
    engine.close()
