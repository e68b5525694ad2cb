"""
Unit tests for the error hierarchy and logging setup.
"""

import logging

import json_log_formatter
import pytest

from quack.vault.config import LoggingConfig
from quack.vault.errors import (
    ClientClosedError,
    CorruptArchiveError,
    EngineError,
    InvalidArgumentError,
    NotFoundError,
    StorageError,
    TableNotFoundError,
    VaultError,
)
from quack.vault.logging_setup import setup_logging


class TestErrors:
    """Tests for error types."""

    @pytest.mark.parametrize(
        "error, code",
        [
            (StorageError("disk full", path="/data"), "STORAGE_ERROR"),
            (CorruptArchiveError("bad zip", path="/data/snapshot/x"), "CORRUPT_ARCHIVE"),
            (EngineError("boom", statement="SELECT 1"), "ENGINE_ERROR"),
            (InvalidArgumentError("bad n", argument="n", value=0), "INVALID_ARGUMENT"),
            (NotFoundError("gone", resource="/data"), "NOT_FOUND"),
            (TableNotFoundError("no table", statement="SELECT * FROM t"), "TABLE_NOT_FOUND"),
            (ClientClosedError(), "CLIENT_CLOSED"),
        ],
    )
    def test_codes(self, error, code):
        """Every error is a VaultError with a stable code."""
        assert isinstance(error, VaultError)
        assert error.code == code

    def test_details(self):
        """Context is kept in details."""
        error = InvalidArgumentError("bad n", argument="n", value=7)

        assert error.details == {"argument": "n", "value": 7}
        assert str(error) == "bad n"

    def test_table_not_found_is_both(self):
        """TableNotFoundError is catchable as NotFoundError and EngineError."""
        error = TableNotFoundError("no table", statement="SELECT * FROM t")

        assert isinstance(error, NotFoundError)
        assert isinstance(error, EngineError)
        assert error.statement == "SELECT * FROM t"


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        """Put the root logger back after each test."""
        root_logger = logging.getLogger()
        handlers, level = root_logger.handlers[:], root_logger.level
        yield
        root_logger.handlers = handlers
        root_logger.setLevel(level)

    def test_json_format(self):
        """JSON format installs the JSON formatter."""
        setup_logging(LoggingConfig(log_level="DEBUG", log_format="json"))

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert isinstance(root_logger.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format(self):
        """Text format installs a plain formatter."""
        setup_logging(LoggingConfig(log_level="warning", log_format="text"))

        root_logger = logging.getLogger()
        assert root_logger.level == logging.WARNING
        assert not isinstance(root_logger.handlers[0].formatter, json_log_formatter.JSONFormatter)
