"""Structured logging for the ingestion pipeline."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from typing import Any

from .config import AppConfig

CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
CONSOLE_DATEFMT = "%Y-%m-%d %H:%M:%S"
NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "urllib3", "PIL")

# Vendor keys travel as query parameters; transport errors can echo the full URL.
_KEY_PARAM = re.compile(r"(?i)\b(api_key|x-api-key|key|token)=([^&\s'\"]+)")


def redact(text: str) -> str:
    return _KEY_PARAM.sub(r"\1=***", text)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra_fields`` are merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": record.name.rsplit(".", 1)[-1],
            "event": getattr(record, "event", record.funcName),
            "environment": getattr(record, "environment", "unknown"),
            "message": redact(record.getMessage()),
        }
        fields = record.__dict__.get("extra_fields")
        if isinstance(fields, dict):
            entry.update(fields)
        if record.exc_info:
            entry["exc_info"] = redact(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


class RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


class ContextFilter(logging.Filter):
    """Stamps the deployment environment and a default event on every record."""

    def __init__(self, environment: str) -> None:
        super().__init__()
        self._environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.environment = self._environment
        record.event = getattr(record, "event", record.funcName)
        return True


def _console_handler(context: ContextFilter) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(RedactingFormatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
    handler.addFilter(context)
    return handler


def _json_file_handler(config: AppConfig, context: ContextFilter) -> logging.Handler:
    config.ensure_runtime_directories()
    handler = TimedRotatingFileHandler(
        filename=str(config.log_path),
        when="midnight",
        backupCount=14,
        utc=True,
        encoding="utf-8",
    )
    handler.setFormatter(JsonFormatter())
    handler.addFilter(context)
    return handler


def configure_logging(config: AppConfig, *, json_file: bool = True) -> None:
    """Replace root handlers with a console sink and, optionally, a rotating JSON file."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.effective_log_level, logging.INFO))
    for existing in list(root.handlers):
        root.removeHandler(existing)

    context = ContextFilter(config.environment)
    root.addHandler(_console_handler(context))
    if json_file:
        root.addHandler(_json_file_handler(config, context))

    # Per-request INFO lines from the HTTP and S3 stacks drown the retry events.
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
