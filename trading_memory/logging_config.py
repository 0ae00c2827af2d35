"""
Structured logging configuration for trading_memory.

Components receive their logger at construction; get_logger() is the default
used when none is injected. Log records are snake_case event names with
structured ``extra`` fields, rendered as one JSON object per line.
"""

import logging
import os
import sys
from typing import Optional, TextIO

from pythonjsonlogger import jsonlogger

from .exceptions import InvalidConfigValueError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")

# Chat model clients log every HTTP request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "langchain_core")


def _resolve_level(level: str) -> int:
    name = str(level).strip().upper()
    if name not in LOG_LEVELS:
        raise InvalidConfigValueError(f"invalid log level {level!r}, expected one of {', '.join(LOG_LEVELS)}")
    return getattr(logging, name)


def build_formatter(log_format: str = "json") -> logging.Formatter:
    """
    Formatter for the given format name.

    Args:
        log_format: "json" (one object per line) or "text"

    Raises:
        InvalidConfigValueError: Unknown format name
    """
    log_format = str(log_format).strip().lower()

    if log_format == "json":
        return jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "logger",
                "message": "event",
            },
        )

    if log_format == "text":
        return logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    raise InvalidConfigValueError(f"invalid log format {log_format!r}, expected one of {', '.join(LOG_FORMATS)}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the root logger with a single structured handler.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "json" or "text"
        stream: Output stream (default: stdout)

    Returns:
        Configured root logger

    Raises:
        InvalidConfigValueError: Unknown level or format

    Example:
        >>> logger = setup_logging(level="INFO")
        >>> logger.info("memory_added", extra={"memory_id": "abc", "importance": 8})
    """
    numeric_level = _resolve_level(level)
    formatter = build_formatter(log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    return root_logger


def setup_logging_from_env(
    default_level: str = "INFO",
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure logging from LOG_LEVEL and LOG_FORMAT.

    Example:
        >>> # LOG_LEVEL=DEBUG LOG_FORMAT=text python -m trading_memory list
        >>> setup_logging_from_env(default_level="WARNING", stream=sys.stderr)
    """
    return setup_logging(
        level=os.getenv("LOG_LEVEL", default_level),
        log_format=os.getenv("LOG_FORMAT", "json"),
        stream=stream,
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Example:
        >>> logger = get_logger("MemoryStore")
        >>> logger.info("memory_store_initialized", extra={"memory_count": 3})
    """
    return logging.getLogger(name)
