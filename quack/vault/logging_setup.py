"""Process-wide logging setup for quack-vault entry points."""

from __future__ import annotations

import logging

import json_log_formatter

from .config import LoggingConfig


def setup_logging(config: LoggingConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Logging configuration
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if config.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("duckdb").setLevel(logging.WARNING)
