# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Structured logging for third-auth.

Loggers take a message plus keyword fields, so call sites read as
``logger.error("Token exchange failed", status_code=401)``. Handlers log
through a logger bound to their provider and client ID (see
:meth:`Logger.bind`), so every record of a validation carries both.

Fields that hold credential material (client secrets, tokens, private keys,
authorization codes) are masked before a record is emitted.

Two backends are available:

- ``stdout``: one JSON object per line on stdout, mirrored to the stdlib
  ``logging`` module so pytest's ``caplog`` and host handlers see it.
- ``silent``: keeps records in memory; used by tests.
"""

import json
import logging
import os
import sys
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Mapping

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

SENSITIVE_FIELDS = frozenset({
    "client_secret",
    "private_key",
    "access_token",
    "refresh_token",
    "id_token",
    "code",
    "code_verifier",
})
REDACTED = "***"


def redact(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``fields`` with credential values masked."""
    return {
        key: REDACTED if key in SENSITIVE_FIELDS and value is not None else value
        for key, value in fields.items()
    }


class Logger(ABC):
    """Abstract base class for loggers."""

    @abstractmethod
    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        """Emit one record."""
        pass

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log("DEBUG", message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log("ERROR", message, **kwargs)

    def bind(self, **fields: Any) -> "BoundLogger":
        """Return a logger that adds ``fields`` to every record.

        Fields passed at the call site win over bound ones.
        """
        return BoundLogger(self, fields)


class BoundLogger(Logger):
    """Logger carrying fixed context fields, e.g. provider and client ID."""

    def __init__(self, parent: Logger, fields: dict[str, Any]):
        self.parent = parent
        self.fields = fields

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        self.parent._log(level, message, **{**self.fields, **kwargs})

    def bind(self, **fields: Any) -> "BoundLogger":
        return BoundLogger(self.parent, {**self.fields, **fields})


class StdoutLogger(Logger):
    """Logger that writes structured JSON lines to stdout."""

    def __init__(self, level: str = "INFO", name: str | None = None):
        """Initialize stdout logger.

        Args:
            level: Minimum level to print (DEBUG, INFO, WARNING, ERROR)
            name: Logger name, also used for the stdlib logger

        Raises:
            ValueError: If level is not recognized
        """
        self.level = level.upper()
        self.name = name or "third_auth"

        if self.level not in _LEVELS:
            raise ValueError(f"Invalid log level: {level}. Must be one of {list(_LEVELS)}")

        self._stdlib_logger = logging.getLogger(self.name)
        # NOTSET defers to the root level; stdout filtering uses self.level
        self._stdlib_logger.setLevel(logging.NOTSET)

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        if _LEVELS[level] < _LEVELS[self.level]:
            return

        fields = redact(kwargs)
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "logger": self.name,
            "message": message,
        }
        if fields:
            entry["extra"] = fields

        try:
            print(json.dumps(entry, default=str), file=sys.stdout, flush=True)
        except (TypeError, ValueError) as e:
            print(f"{level}: {message} (JSON serialization failed: {e})", file=sys.stderr, flush=True)

        self._stdlib_logger.log(_LEVELS[level], message, extra={"extra": fields} if fields else None)


class SilentLogger(Logger):
    """Logger that stores records in memory without output.

    Does not filter by level; every record is kept (redacted) so tests can
    assert on it.
    """

    def __init__(self, level: str = "INFO", name: str | None = None):
        self.level = level.upper()
        self.name = name or "third_auth"
        self.logs: list[dict[str, Any]] = []

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        entry: dict[str, Any] = {"level": level, "message": message}
        if kwargs:
            entry["extra"] = redact(kwargs)
        self.logs.append(entry)

    def clear_logs(self) -> None:
        self.logs.clear()

    def get_logs(self, level: str | None = None) -> list[dict[str, Any]]:
        if level is None:
            return self.logs
        return [log for log in self.logs if log["level"] == level]

    def find(self, message: str, level: str | None = None) -> list[dict[str, Any]]:
        """Records whose message contains ``message``."""
        return [log for log in self.get_logs(level) if message in log["message"]]


def _default(value: str | None, env_var: str, fallback: str) -> str:
    """Pick an explicit value, then the env var, then the fallback."""
    return value or os.getenv(env_var) or fallback


def create_logger(
    logger_type: str | None = None,
    level: str | None = None,
    name: str | None = None,
) -> Logger:
    """Create a logger instance.

    Args:
        logger_type: "stdout" or "silent". Defaults to LOG_TYPE env or "stdout".
        level: DEBUG, INFO, WARNING or ERROR. Defaults to LOG_LEVEL env or "INFO".
        name: Logger name. Defaults to LOG_NAME env or "third_auth".

    Returns:
        Logger instance

    Raises:
        ValueError: If logger_type is not recognized
    """
    logger_type = _default(logger_type, "LOG_TYPE", "stdout").lower()
    level = _default(level, "LOG_LEVEL", "INFO").upper()
    name = _default(name, "LOG_NAME", "third_auth")

    if logger_type == "stdout":
        return StdoutLogger(level=level, name=name)
    elif logger_type == "silent":
        return SilentLogger(level=level, name=name)
    else:
        raise ValueError(
            f"Unknown logger_type: {logger_type}. Must be one of: stdout, silent"
        )
