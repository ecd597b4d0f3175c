from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from crm_authz.context import get_log_context


_BASE_RECORD_KEYS = set(logging.makeLogRecord({}).__dict__.keys())

# "module" is a reserved LogRecord attribute, so authz code logs it as "authz_module".
_FIELD_ALIASES = {"authz_module": "module"}

_REQUEST_FIELDS = ("method", "path", "status_code", "duration_ms")
_DECISION_FIELDS = ("module", "action", "entity_type", "entity_id", "user_id", "role", "decision")
_ADMIN_FIELDS = ("modules", "policies", "error")
_KNOWN_FIELDS = frozenset(_REQUEST_FIELDS + _DECISION_FIELDS + _ADMIN_FIELDS)

_CONTEXT_KEYS = frozenset({"correlation_id", "caller"})

_MAX_ERROR_LENGTH = 500


def _stamp_request_context(record: logging.LogRecord) -> None:
    for key, value in get_log_context().items():
        if getattr(record, key, None) is None:
            setattr(record, key, value)


class RequestContextFilter(logging.Filter):
    """Copies correlation id and the authenticated caller onto records.

    Records built by the installed record factory already carry both; the
    filter covers records created before ``configure_logging`` ran.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        _stamp_request_context(record)
        return True


_DEFAULT_RECORD_FACTORY = logging.getLogRecordFactory()


def _record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _DEFAULT_RECORD_FACTORY(*args, **kwargs)
    _stamp_request_context(record)
    return record


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record.

    Correlation id and caller identity are promoted to the top level; the
    remaining allow-listed extras go under "fields".
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }

        caller = getattr(record, "caller", None)
        if caller is not None:
            payload["caller"] = caller

        fields: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _BASE_RECORD_KEYS or key in _CONTEXT_KEYS:
                continue
            name = _FIELD_ALIASES.get(key, key)
            if name in _KNOWN_FIELDS:
                fields[name] = value

        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:_MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        payload["fields"] = fields
        return json.dumps(payload, default=str)


def configure_logging() -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_crm_authz_configured", False):
        return

    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(RequestContextFilter())

    root_logger.handlers.clear()
    root_logger.filters.clear()
    root_logger.setLevel(level)
    logging.setLogRecordFactory(_record_factory)
    root_logger.addHandler(handler)
    root_logger._crm_authz_configured = True  # type: ignore[attr-defined]
