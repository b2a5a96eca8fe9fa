"""Structured logging setup for regenblocks.

Every run appends JSON lines to a log file. The level comes from the CLI
(--log-level), then from the REGENBLOCKS_LOG_LEVEL environment variable,
then defaults to INFO:

- DEBUG: atomic write details, unchanged outputs, stale file scans
- INFO: files loaded/saved, merges, builds
- WARNING: conversion warnings, delete retries
- ERROR: conversion errors, failed loads and merges

Example:
    regenblocks --log-level debug merge Generated.cs Patient.cs -p "Generated.*"
    tail -f ~/.cache/regenblocks/logs/regenblocks.log | jq .
"""

import os
from pathlib import Path
from typing import Any, Optional

import structlog

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_LEVEL_ENV = "REGENBLOCKS_LOG_LEVEL"


def default_log_file() -> Path:
    return Path.home() / ".cache" / "regenblocks" / "logs" / "regenblocks.log"


def resolve_log_level(level: Optional[str] = None) -> str:
    """Pick the effective log level.

    An explicit level wins over the environment variable. An unknown value
    in the environment falls back to INFO.

    Raises:
        ValueError: If an explicit level is not one of LOG_LEVELS
    """
    if level is not None:
        level = level.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level '{level}'. Expected one of: {', '.join(LOG_LEVELS)}")
        return level

    level = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    return level if level in LOG_LEVELS else "INFO"


def configure_logging(level: Optional[str] = None, log_file: Optional[Path] = None) -> Path:
    """
    Configure structlog to append JSON lines to log_file.

    Args:
        level: Log level name (case-insensitive); see resolve_log_level
        log_file: Log file (default: ~/.cache/regenblocks/logs/regenblocks.log)

    Returns:
        The log file in use
    """
    log_file = log_file or default_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolve_log_level(level)),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=open(log_file, "a")),
        cache_logger_on_first_use=True,
    )
    return log_file


def get_logger(name: str) -> Any:
    """
    Get a structured logger whose events carry the module name.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("editor_saved", path="Patient.cs", changed=True)
    """
    return structlog.get_logger(name, module=name)
