"""Centralized logging utilities for the Agent Bar URL matcher.

Matching code logs through ``get_logger`` and never configures handlers
itself. Applications (and the diagnostic CLI) call ``configure_logging`` once;
level and format fall back to environment variables. Correlation identifiers
ride along in a context variable so that every record of one lookup can be
grouped.
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
import sys
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

_LOG_LEVEL_ENV_VAR = "AGENTBAR_MATCHER_LOG_LEVEL"
_LOG_FORMAT_ENV_VAR = "AGENTBAR_MATCHER_LOG_FORMAT"
_DEFAULT_LEVEL = "INFO"
_DEFAULT_FORMAT = "console"
_FORMATS = ("console", "json")

_STANDARD_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}

_correlation_id: ContextVar[Optional[str]] = ContextVar("agentbar_correlation_id", default=None)

TraceHook = Callable[[str, Mapping[str, Any]], None]
"""Callback receiving ``(event_name, fields)`` from the matcher."""


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the active correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - required signature
        record.correlation_id = get_correlation_id() or "-"
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - override
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_ATTRS and key not in payload and not key.startswith("_")
        }
        payload.update(extras)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _resolve_level(level: Optional[str]) -> str:
    candidate = str(level if level is not None else os.getenv(_LOG_LEVEL_ENV_VAR, _DEFAULT_LEVEL)).upper()
    if not isinstance(logging.getLevelName(candidate), int):
        return _DEFAULT_LEVEL
    return candidate


def _resolve_format(log_format: Optional[str]) -> str:
    candidate = str(log_format if log_format is not None else os.getenv(_LOG_FORMAT_ENV_VAR, _DEFAULT_FORMAT)).lower()
    return candidate if candidate in _FORMATS else _DEFAULT_FORMAT


def configure_logging(*, level: Optional[str] = None, log_format: Optional[str] = None, stream: Any = None) -> None:
    """Install a single stream handler on the root logger.

    ``level`` and ``log_format`` override ``AGENTBAR_MATCHER_LOG_LEVEL`` and
    ``AGENTBAR_MATCHER_LOG_FORMAT``. Unknown values fall back to ``INFO`` and
    ``console``.
    """

    resolved_level = _resolve_level(level)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"correlation": {"()": CorrelationIdFilter}},
            "formatters": {
                "json": {"()": JsonFormatter},
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(correlation_id)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": stream or sys.stderr,
                    "level": resolved_level,
                    "filters": ["correlation"],
                    "formatter": _resolve_format(log_format),
                }
            },
            "root": {"level": resolved_level, "handlers": ["default"]},
        }
    )


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


class LogContext:
    """Bind a correlation id for the duration of a ``with`` block."""

    def __init__(self, correlation_id: Optional[str] = None):
        self._correlation_id = correlation_id or generate_correlation_id()
        self._token: Optional[Token] = None

    def __enter__(self) -> str:
        self._token = _correlation_id.set(self._correlation_id)
        return self._correlation_id

    def __exit__(self, exc_type, exc, exc_tb) -> None:  # noqa: D401 - context manager signature
        if self._token is not None:
            _correlation_id.reset(self._token)
            self._token = None


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def logging_trace_hook(logger: logging.Logger, level: int = logging.DEBUG) -> TraceHook:
    """Build a matcher trace hook that forwards events to ``logger``."""

    def _hook(event: str, fields: Mapping[str, Any]) -> None:
        if logger.isEnabledFor(level):
            logger.log(level, "Matcher trace: %s", event, extra={"trace_event": event, **dict(fields)})

    return _hook
