"""Structured logging for the relief services.

Every line is a JSON object. Records carry the id of the HTTP request that
produced them and a category taken from the emitting module, and personal
data is scrubbed before anything is written.
"""
import json
import logging
import logging.config
import re
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

RESERVED_ATTRS = frozenset(
    (
        "args", "msg", "levelname", "levelno", "name", "pathname", "filename", "module",
        "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
        "relativeCreated", "thread", "threadName", "processName", "process", "taskName",
    )
)

REDACTED = "[REDACTED]"
REDACTED_KEYS = frozenset(
    (
        "first_name", "last_name", "middle_name", "date_of_birth", "ssn", "phone", "email", "address",
        "firstName", "lastName", "middleName", "dateOfBirth", "personal_info", "personalInfo",
    )
)
SSN_TEXT_RE = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")

ROOT_LOGGER = "clearpath"

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def redact(value: Any) -> Any:
    """Scrub personal data from a log value, descending into containers."""
    if isinstance(value, Mapping):
        return {key: REDACTED if key in REDACTED_KEYS else redact(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [redact(item) for item in value]
    if isinstance(value, str):
        return SSN_TEXT_RE.sub(REDACTED, value)
    return value


def log_category(logger_name: str) -> str:
    """``clearpath.templating.processor`` -> ``templating``."""
    parts = logger_name.split(".")
    if parts[0] == ROOT_LOGGER and len(parts) > 1:
        return parts[1]
    return parts[0]


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request id and a category."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        if getattr(record, "category", None) is None:
            record.category = log_category(record.name)
        return True


class JsonFormatter(logging.Formatter):
    """Format log records as JSON lines with personal data scrubbed."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in RESERVED_ATTRS or key in payload:
                continue
            if value is None and key == "request_id":
                continue
            payload[key] = REDACTED if key in REDACTED_KEYS else redact(value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str) -> None:
    """Configure root logging to emit JSON."""
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_context": {"()": RequestContextFilter},
        },
        "formatters": {
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "filters": ["request_context"],
            }
        },
        "loggers": {
            ROOT_LOGGER: {"level": level},
        },
        "root": {
            "level": level,
            "handlers": ["stdout"],
        },
    }
    logging.config.dictConfig(logging_config)
