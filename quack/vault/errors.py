"""
Error types for quack-vault.

This module defines every exception raised by the vault:
- VaultError: Base exception
- StorageError: Filesystem or staging failures
- CorruptArchiveError: Snapshot file is not a valid archive
- EngineError: Any failure surfaced by the embedded engine
- InvalidArgumentError: Caller passed an out-of-range or malformed value
- NotFoundError: Missing directory, snapshot or table
- TableNotFoundError: Engine reported a missing table
- ClientClosedError: Operation on a closed client

Invariants:
    - All errors inherit from VaultError
    - Library exceptions are wrapped once, with the original as __cause__
    - Errors include context for debugging in ``details``

How to change safely:
    - Add new error types as subclasses, never change existing codes
    - Keep TableNotFoundError catchable as both NotFoundError and EngineError
"""

from __future__ import annotations

from typing import Any


class VaultError(Exception):
    """Base exception for all quack-vault errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "VAULT_ERROR"
        self.details = details or {}


class StorageError(VaultError):
    """Filesystem operation failed.

    Raised when:
    - The root or snapshot directory cannot be created
    - Staging an input stream to a temporary file fails
    - A snapshot cannot be written, moved or deleted
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, code="STORAGE_ERROR", details={"path": path})
        self.path = path


class CorruptArchiveError(VaultError):
    """Snapshot archive is malformed or unsafe to unpack."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, code="CORRUPT_ARCHIVE", details={"path": path})
        self.path = path


class EngineError(VaultError):
    """The embedded engine rejected or failed a statement.

    Raised when:
    - A statement has a syntax or execution error
    - Incoming records do not match an existing table's schema
    - A transaction cannot be committed
    """

    def __init__(self, message: str, statement: str | None = None) -> None:
        super().__init__(message, code="ENGINE_ERROR", details={"statement": statement})
        self.statement = statement


class InvalidArgumentError(VaultError, ValueError):
    """Argument outside its allowed range."""

    def __init__(self, message: str, argument: str | None = None, value: Any = None) -> None:
        super().__init__(
            message,
            code="INVALID_ARGUMENT",
            details={"argument": argument, "value": value},
        )
        self.argument = argument
        self.value = value


class NotFoundError(VaultError):
    """Requested directory, snapshot or table does not exist."""

    def __init__(self, message: str, resource: str | None = None) -> None:
        super().__init__(message, code="NOT_FOUND", details={"resource": resource})
        self.resource = resource


class TableNotFoundError(NotFoundError, EngineError):
    """Engine reported that a referenced table does not exist."""

    def __init__(self, message: str, statement: str | None = None) -> None:
        VaultError.__init__(
            self,
            message,
            code="TABLE_NOT_FOUND",
            details={"statement": statement},
        )
        self.resource = None
        self.statement = statement


class ClientClosedError(VaultError):
    """Client was already closed."""

    def __init__(self, message: str = "client is closed") -> None:
        super().__init__(message, code="CLIENT_CLOSED")
