"""Structured logging helpers."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable


def format_message(msg: str, **kwargs: Any) -> str:
    """Append ``key=value`` pairs to a message, in the order given."""
    if not kwargs:
        return msg
    pairs = " ".join(f"{key}={value}" for key, value in kwargs.items())
    return f"{msg} {pairs}"


@runtime_checkable
class Logger(Protocol):
    """Structured logging methods."""

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an informational message."""

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an error message."""


class StdLogger:
    """Logger that writes through the standard ``logging`` module."""

    def __init__(self, name: str = "vitaltrack") -> None:
        self._log = logging.getLogger(name)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an informational message with optional key-value pairs."""
        self._log.info("%s", format_message(msg, **kwargs))

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an error message with optional key-value pairs."""
        self._log.error("%s", format_message(msg, **kwargs))