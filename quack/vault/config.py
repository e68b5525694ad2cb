"""
Configuration management for quack-vault.

Configuration comes from explicit arguments or environment variables; there
are no config files. This module provides typed configuration classes with
validation.

Invariants:
    - All settings have sensible defaults for local development
    - Retention is a positive integer fixed for the lifetime of a client
    - Directory and file names never contain path separators

How to change safely:
    - Add new settings with defaults that keep existing deployments working
    - Engine settings must map onto DuckDB ``SET`` options
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import InvalidArgumentError

logger = logging.getLogger(__name__)


def _optional_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    return int(raw)


@dataclass(frozen=True)
class StoreConfig:
    """Local store configuration.

    Attributes:
        root_dir: Directory holding the database file and snapshot directory
        retention: Number of snapshots kept (N)
        database_name: Database file name inside root_dir
        snapshot_dirname: Snapshot directory name inside root_dir
        scratch_dir: Parent for staging files and scratch directories
            (system temp directory if None)
        threads: DuckDB worker threads (engine default if None)
        memory_limit: DuckDB memory limit, e.g. "2GB" (engine default if None)
    """

    root_dir: str = "./quack-data"
    retention: int = 3
    database_name: str = "database.duckdb"
    snapshot_dirname: str = "snapshot"
    scratch_dir: str | None = None
    threads: int | None = None
    memory_limit: str | None = None

    @property
    def database_path(self) -> Path:
        return Path(self.root_dir) / self.database_name

    @property
    def snapshot_dir(self) -> Path:
        return Path(self.root_dir) / self.snapshot_dirname

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Load configuration from environment variables."""
        return cls(
            root_dir=os.getenv("QUACK_ROOT_DIR", "./quack-data"),
            retention=int(os.getenv("QUACK_RETENTION", "3")),
            database_name=os.getenv("QUACK_DATABASE_NAME", "database.duckdb"),
            snapshot_dirname=os.getenv("QUACK_SNAPSHOT_DIRNAME", "snapshot"),
            scratch_dir=os.getenv("QUACK_SCRATCH_DIR") or None,
            threads=_optional_int("QUACK_THREADS"),
            memory_limit=os.getenv("QUACK_MEMORY_LIMIT") or None,
        )

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            InvalidArgumentError: If a setting is out of range or malformed.
        """
        if self.retention < 1:
            raise InvalidArgumentError(
                f"retention must be at least 1, got {self.retention}",
                argument="retention",
                value=self.retention,
            )
        for name, value in (
            ("database_name", self.database_name),
            ("snapshot_dirname", self.snapshot_dirname),
        ):
            if not value or "/" in value or "\\" in value or value in (".", ".."):
                raise InvalidArgumentError(
                    f"{name} must be a plain file name, got {value!r}",
                    argument=name,
                    value=value,
                )
        if self.threads is not None and self.threads < 1:
            raise InvalidArgumentError(
                f"threads must be at least 1, got {self.threads}",
                argument="threads",
                value=self.threads,
            )


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> LoggingConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class VaultConfig:
    """Complete configuration.

    Attributes:
        store: Local store configuration
        logging: Logging configuration
    """

    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> VaultConfig:
        """Load complete configuration from environment variables.

        Raises:
            InvalidArgumentError: If configuration is invalid.
        """
        config = cls(store=StoreConfig.from_env(), logging=LoggingConfig.from_env())
        config.validate()
        return config

    def validate(self) -> None:
        self.store.validate()
        if self.logging.log_format not in ("json", "text"):
            raise InvalidArgumentError(
                f"Invalid LOG_FORMAT '{self.logging.log_format}'. Must be one of: json, text",
                argument="log_format",
                value=self.logging.log_format,
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Vault configuration loaded",
            extra={
                "root_dir": self.store.root_dir,
                "retention": self.store.retention,
                "database_name": self.store.database_name,
                "snapshot_dirname": self.store.snapshot_dirname,
                "scratch_dir": self.store.scratch_dir,
                "log_level": self.logging.log_level,
            },
        )
