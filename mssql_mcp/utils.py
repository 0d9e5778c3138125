"""Utility functions for the SQL Server MCP server."""

import logging
import sys
from typing import Any

from .constants import SENSITIVE_KEYS

REDACTED = "***REDACTED***"


def setup_logging(log_level: str = "INFO", structured: bool = False) -> logging.Logger:
    """
    Setup logging configuration for the application.

    Logs go to stderr; stdout is reserved for the MCP stdio transport.

    Args:
        log_level: The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: Whether to use structured logging format (JSON)

    Returns:
        Logger instance for the root logger
    """
    # Convert string log level to logging constant
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    if structured:
        formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove any existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)

    root_logger.addHandler(console_handler)

    return root_logger


def sanitize_for_logging(data: Any) -> Any:
    """Return a copy of ``data`` with credential-like values redacted.

    Nested dicts and lists are walked; a key counts as sensitive when it
    equals or ends with one of the known credential names.
    """
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            lowered = str(key).lower()
            if any(lowered == k or lowered.endswith("_" + k) for k in SENSITIVE_KEYS):
                sanitized[key] = REDACTED
            else:
                sanitized[key] = sanitize_for_logging(value)
        return sanitized
    if isinstance(data, list):
        return [sanitize_for_logging(item) for item in data]
    return data
