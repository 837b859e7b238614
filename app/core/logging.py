"""Logging utilities with JSON formatting, redaction, and request correlation.

Login credentials, form contents and raw client addresses must never reach
the log stream: the redaction filter replaces them with "[REDACTED]" and
guards log client keys only as truncated hashes.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "password",
        "admin_password",
        "email",
        "submitter_name",
        "message_body",
        "authorization",
        "cookie",
        "set-cookie",
        "token",
        "secret",
        "client_ip",
        "client_key",
        "x-forwarded-for",
        "x-real-ip",
        "cf-connecting-ip",
    }
)

# Standard LogRecord attributes, never treated as structured extras
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


def set_request_id(request_id: str | None) -> None:
    """Store the current request id in a context variable."""

    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def _redact(value: Any, sensitive_keys: frozenset[str]) -> Any:
    """Recursively redact sensitive values within mappings and sequences."""

    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in sensitive_keys else _redact(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_redact(v, sensitive_keys) for v in value)
    return value


def record_extras(record: LogRecord, sensitive_keys: frozenset[str]) -> dict[str, Any]:
    """Collect the structured ``extra`` fields of a record, redacted.

    Args:
        record: LogRecord instance to inspect.
        sensitive_keys: Lower-cased keys that must be redacted.

    Returns:
        Dict of extra fields ready for formatting.
    """

    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        if key.lower() in sensitive_keys:
            extras[key] = REDACTED
        else:
            extras[key] = _redact(value, sensitive_keys)
    return extras


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact sensitive fields on the record before formatting."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(
            k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)
        )

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in record_extras(record, self.sensitive_keys).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Format LogRecord as a single JSON line."""

    def __init__(self, *, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(
            k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)
        )

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(record_extras(record, self.sensitive_keys))

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Construct the stdout or (rotating) file handler from configuration."""

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/abuse-guard.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Configure root logger with JSON formatter and redaction.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())

    if cfg.format.lower() == "plain":
        formatter: logging.Formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = JsonFormatter()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
