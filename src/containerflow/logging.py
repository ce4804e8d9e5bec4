"""Logging configuration for containerflow.

Stack code logs with ``extra={"event": LogEvent..., ...}`` and names the
resource it acts on through a small set of context keys (step, container,
service, network, kind). Both output formats surface those keys:

- text: ``... - message [event step=network]`` for local use
- json: one object per record with event and context keys at top level
"""

import logging
import sys
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pythonjsonlogger import json as jsonlogger

from containerflow.config import LoggingConfig

CONTEXT_FIELDS = ("step", "container", "service", "network", "kind")


def record_context(record: logging.LogRecord) -> dict[str, str]:
    """Context keys present on a record, enum members reduced to values."""
    context = {}
    for field in CONTEXT_FIELDS:
        value = getattr(record, field, None)
        if value is not None:
            context[field] = value.value if isinstance(value, Enum) else str(value)
    return context


def record_event(record: logging.LogRecord) -> str | None:
    event = getattr(record, "event", None)
    if isinstance(event, Enum):
        return event.value
    return event


class RateLimitFilter(logging.Filter):
    """Drop repeats of the same event on the same resource.

    Structured records are keyed by event and context, so a readiness poll
    that logs every attempt for the database step shows up once per window
    while events for other steps or containers pass. Unstructured records
    fall back to logger, line and rendered message. ERROR and above always
    pass.
    """

    def __init__(self, rate_limit_seconds: float = 5.0, max_cache_size: int = 1000) -> None:
        super().__init__()
        self._rate_limit = rate_limit_seconds
        self._max_cache = max_cache_size
        self._last_seen: dict[tuple, float] = {}

    def _key(self, record: logging.LogRecord) -> tuple:
        event = record_event(record)
        if event is None:
            return (record.name, record.lineno, record.getMessage())
        return (record.name, event, tuple(sorted(record_context(record).items())))

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True

        key = self._key(record)
        now = time.monotonic()
        last = self._last_seen.get(key)
        if last is not None and now - last < self._rate_limit:
            return False
        self._last_seen[key] = now

        if len(self._last_seen) > self._max_cache:
            for old in sorted(self._last_seen, key=self._last_seen.__getitem__)[: self._max_cache // 10]:
                del self._last_seen[old]
        return True


class StackTextFormatter(logging.Formatter):
    """Plain text with the event and its context appended."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        event = record_event(record)
        if event is None:
            return line
        context = " ".join(f"{key}={value}" for key, value in record_context(record).items())
        suffix = f"{event} {context}" if context else event
        first, newline, rest = line.partition("\n")
        return f"{first} [{suffix}]{newline}{rest}"


class StackJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter for log aggregation.

    Every record carries timestamp, level, logger, service and event
    (``"log"`` for unstructured records). Context keys are emitted as
    strings at top level so the aggregator can index them; a project
    logged under ``service`` is emitted as ``project``. ``subject`` names
    the most specific resource of the record.
    """

    def __init__(self, config: LoggingConfig, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._service = config.service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["event"] = record_event(record) or "log"

        context = record_context(record)
        # "service" is the app identifier; a project logged as service moves to "project"
        project = context.pop("service", None)
        log_record.update(context)
        log_record["service"] = self._service
        if project is not None:
            log_record["project"] = project
        subject = context.get("container") or context.get("network") or context.get("step") or project
        if subject is not None:
            log_record["subject"] = subject

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        log_record.pop("color_message", None)


def setup_logging(config: LoggingConfig) -> None:
    """Install one stdout handler on the root and uvicorn loggers."""
    level = getattr(logging, config.level.upper(), logging.INFO)

    formatter: logging.Formatter
    if config.format == "json":
        formatter = StackJsonFormatter(config)
    else:
        formatter = StackTextFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(RateLimitFilter(rate_limit_seconds=config.rate_limit_seconds))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = False
        uv_logger.addHandler(handler)
    logging.getLogger("uvicorn.access").disabled = True

    # Engine and database clients are chatty at INFO
    for name in ("httpx", "httpcore", "aiomysql"):
        logging.getLogger(name).setLevel(logging.WARNING)
