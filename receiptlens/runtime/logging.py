"""Logging for receiptlens.

All loggers live under the "receiptlens" namespace and write to stderr.
RECEIPTLENS_LOG_LEVEL (DEBUG, INFO, WARNING, ERROR) sets the starting level;
the CLI --log-level flag overrides it.
"""

import logging
import os
import sys

LOG_NAMESPACE = "receiptlens"
LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
LOG_FORMAT_DEBUG = "%(levelname)s [%(name)s:%(lineno)d] %(message)s"

_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_handler: logging.Handler | None = None


def parse_log_level(value: str) -> int | None:
    """Map a level name like "debug" to its logging constant; unknown names yield None."""
    return _LEVEL_MAP.get(value.strip().upper())


def _apply_level(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    # Line numbers only in debug output.
    log_format = LOG_FORMAT_DEBUG if level == logging.DEBUG else LOG_FORMAT
    for handler in logger.handlers:
        handler.setFormatter(logging.Formatter(log_format))


def _namespace_logger() -> logging.Logger:
    global _handler

    logger = logging.getLogger(LOG_NAMESPACE)
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        logger.addHandler(_handler)
        logger.propagate = False
        level = parse_log_level(os.environ.get("RECEIPTLENS_LOG_LEVEL", "")) or logging.INFO
        _apply_level(logger, level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module, nested under the receiptlens namespace."""
    _namespace_logger()
    if name == LOG_NAMESPACE or name.startswith(f"{LOG_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOG_NAMESPACE}.{name}")


def set_log_level(level: int) -> None:
    """Change the level of every receiptlens logger at runtime."""
    _apply_level(_namespace_logger(), level)
