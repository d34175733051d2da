"""Logging utilities for lsqtrust.

Every solver module logs through a child of the ``lsqtrust`` logger obtained
with :func:`get_logger`. Output goes to one stream handler per logger, built
from a shared configuration, so :func:`configure_logging` also governs
loggers that are created after it runs (solver modules imported later, or
loggers requested lazily by user code).
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional

_PACKAGE = "lsqtrust"
_DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

# Shared handler configuration
_level: int = logging.WARNING
_format: str = _DEFAULT_FORMAT
_stream: Optional[IO[str]] = None

_loggers: dict[str, logging.Logger] = {}


def _coerce_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return level


def _qualified(name: Optional[str]) -> str:
    if not name or name == _PACKAGE:
        return _PACKAGE
    if name.startswith(_PACKAGE + "."):
        return name
    return f"{_PACKAGE}.{name}"


def _attach_handler(logger: logging.Logger) -> None:
    """Replace the handlers of ``logger`` with one built from the shared config."""
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    handler = logging.StreamHandler(_stream if _stream is not None else sys.stderr)
    handler.setLevel(_level)
    handler.setFormatter(logging.Formatter(_format))
    logger.addHandler(handler)
    logger.setLevel(_level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get or create a logger for the given module name.

    Args:
        name: Logger name, typically ``__name__``. Names outside the package
            are placed under ``lsqtrust.``; None returns the package logger.

    Returns:
        Cached logger with a single handler that does not propagate to the
        root logger.

    Example:
        >>> from lsqtrust.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.debug("trust radius shrunk")
    """
    qualified = _qualified(name)
    logger = _loggers.get(qualified)
    if logger is None:
        logger = logging.getLogger(qualified)
        _attach_handler(logger)
        logger.propagate = False
        _loggers[qualified] = logger
    return logger


def set_log_level(level: int | str) -> None:
    """Set the level of every lsqtrust logger and of loggers created later.

    Args:
        level: Logging level (logging.DEBUG, logging.INFO, etc.) or string
            ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL').
    """
    global _level
    _level = _coerce_level(level)
    for logger in _loggers.values():
        logger.setLevel(_level)
        for handler in logger.handlers:
            handler.setLevel(_level)


def configure_logging(
    level: int | str = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """Configure level, format and stream for all lsqtrust loggers.

    Args:
        level: Logging level (default: WARNING).
        format_string: Record format. If None, uses ``[LEVEL] name: message``.
        stream: Output stream (default: sys.stderr).

    Example:
        >>> import logging
        >>> from lsqtrust.logging import configure_logging
        >>> configure_logging(level=logging.DEBUG)
    """
    global _level, _format, _stream
    _level = _coerce_level(level)
    _format = format_string or _DEFAULT_FORMAT
    _stream = stream
    for logger in _loggers.values():
        _attach_handler(logger)


__all__ = ["get_logger", "set_log_level", "configure_logging"]
