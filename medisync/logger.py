"""
Structured JSON Logging.

One JSON object per line on stdout and in a size-rotated log file.
Caller context goes in ``extra``; the ``event`` key, when present, is
lifted to the top level so log pipelines can filter on it.  Credential
fields never reach the output.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional, TextIO

# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.makeLogRecord({})).keys()
) | {"message", "asctime", "taskName"}

_REDACTED_KEYS: frozenset[str] = frozenset({
    "password",
    "access_token",
    "refresh_token",
    "auth_code",
    "supabase_anon_key",
})


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class JSONFormatter(logging.Formatter):
    """Render a record as ``{"timestamp", "level", "logger_name", "message", ...}``.

    Optional keys: ``event``, ``extra`` (remaining caller fields) and
    ``exception`` (formatted traceback).
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra: dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS:
                continue
            extra[key] = "***" if key.lower() in _REDACTED_KEYS else _json_safe(value)

        event = extra.pop("event", None)
        if event is not None:
            entry["event"] = event
        if extra:
            entry["extra"] = extra

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)


class StructuredLogger:
    """Injectable wrapper around a named ``logging.Logger``.

    Handlers are attached once per logger name, so building several
    ``StructuredLogger`` objects with the same name is cheap and does not
    duplicate output.  Unset arguments fall back to ``AppConfig``.

    Usage::

        log = StructuredLogger(name="medisync.auth")
        log.info("Session restored", extra={"event": "AUTH_STATE_CHANGED"})
    """

    def __init__(
        self,
        name: str = "medisync",
        level: Optional[int | str] = None,
        stream: Optional[TextIO] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        # Deferred so importing this module never loads settings.
        from medisync.config import get_config
        cfg = get_config()

        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(level if level is not None else cfg.LOG_LEVEL.upper())

        if self._logger.handlers:
            return

        formatter = JSONFormatter()
        console = logging.StreamHandler(stream or sys.stdout)
        console.setFormatter(formatter)
        self._logger.addHandler(console)

        path = Path(log_file or cfg.LOG_FILE)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            rotating = RotatingFileHandler(
                filename=str(path),
                maxBytes=max_bytes if max_bytes is not None else cfg.LOG_MAX_BYTES,
                backupCount=backup_count if backup_count is not None else cfg.LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except OSError as exc:
            self._logger.warning(
                "Log file '%s' unavailable (%s); logging to console only.", path, exc,
            )
        else:
            rotating.setFormatter(formatter)
            self._logger.addHandler(rotating)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def name(self) -> str:
        return self._logger.name

    def debug(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.critical(msg, *args, **kwargs)


def get_logger(name: str = "medisync") -> StructuredLogger:
    """Shorthand for ``StructuredLogger(name=name)`` with config defaults."""
    return StructuredLogger(name=name)
