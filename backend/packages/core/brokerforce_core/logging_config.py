"""
Logging configuration.

Configures the standard library logging tree once per process. Records carry
structured context through ``extra=``; the formatter appends those fields to
the message so they show up in plain-text logs.
"""

import logging
import os
import sys
from typing import Any

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}

_DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

_initialized = False


class ContextFormatter(logging.Formatter):
    """Formatter that renders ``extra=`` fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = self._extract_context(record)
        if not context:
            return message
        rendered = " ".join(f"{key}={value!r}" for key, value in sorted(context.items()))
        return f"{message} | {rendered}"

    @staticmethod
    def _extract_context(record: logging.LogRecord) -> dict[str, Any]:
        return {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }


def init_logging(level: str | int | None = None, *, force: bool = False) -> None:
    """
    Configure root logging for the application.

    Args:
        level: Log level name or number. Defaults to ``LOG_LEVEL`` env var or INFO.
        force: Reconfigure even if logging was already initialized.
    """
    global _initialized

    if _initialized and not force:
        return

    resolved = level if level is not None else os.getenv("LOG_LEVEL", "INFO")
    if isinstance(resolved, str):
        resolved = resolved.upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(_DEFAULT_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(resolved)

    # Quiet chatty libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Args:
        name: Logger name, usually ``__name__``.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
