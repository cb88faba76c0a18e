from __future__ import annotations

import json
import logging
import sys
from typing import Any

from recurbill.core.config import settings

_RESERVED = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

# Chatty third-party loggers capped at WARNING unless LOG_LEVEL is DEBUG.
_NOISY_LOGGERS = ("sqlalchemy.engine", "kombu", "amqp", "urllib3")


class EnvironmentFilter(logging.Filter):
    """Stamp every record with the app name and deployment environment."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.app = settings.APP_NAME
        record.env = settings.ENV
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "app": getattr(record, "app", settings.APP_NAME),
            "env": getattr(record, "env", settings.ENV),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # Anything passed through ``extra=`` (charge_id, client_id, trigger...)
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED or key in payload:
                continue
            payload.setdefault("extra", {})[key] = value
        return json.dumps(payload, default=str)


def init_logging(level: int | None = None) -> None:
    """Configure the root logger once; later calls (API, worker, CLI) are no-ops."""
    if logging.getLogger().handlers:
        return
    effective_level = level or getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(EnvironmentFilter())
    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        fmt = "%(asctime)s | %(levelname)s | %(env)s | %(name)s | %(message)s"
        handler.setFormatter(logging.Formatter(fmt))
    root = logging.getLogger()
    root.setLevel(effective_level)
    root.addHandler(handler)
    if effective_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
