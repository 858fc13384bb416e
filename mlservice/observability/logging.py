"""
mlservice - Structured Logging

Provides JSON-formatted structured logging with service correlation and
consistent field names across all log entries.

Usage:
    import logging

    from mlservice.observability.logging import configure_logging

    # Configure at startup
    configure_logging(level="INFO", format="json")

    # Use in code
    logger = logging.getLogger(__name__)
    logger.info("Training finished", extra={
        "library": "xgboost",
        "status_code": 0,
    })

Output:
    {
        "timestamp": "2026-10-18T10:30:00.123Z",
        "level": "INFO",
        "logger": "mlservice.runtime.dispatch",
        "service": "iris",
        "message": "Training finished",
        "library": "xgboost",
        "status_code": 0
    }
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

# Name of the service the current thread/task works for
service_name_var: ContextVar[Optional[str]] = ContextVar("service_name", default=None)


class JsonFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Extra fields passed through `extra=` become top-level keys.
    """

    RESERVED_FIELDS = {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }

    def __init__(self, redact_fields: Optional[list] = None):
        """
        Initialize JSON formatter.

        Args:
            redact_fields: List of field names to redact (truncate)
        """
        super().__init__()
        self.redact_fields = redact_fields or ["password", "token", "api_key"]

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        service = service_name_var.get()
        if service:
            log_entry["service"] = service

        for key, value in record.__dict__.items():
            if key in self.RESERVED_FIELDS:
                continue

            if key in self.redact_fields and isinstance(value, str):
                if len(value) > 8:
                    value = value[:4] + "...[REDACTED]"
                else:
                    value = "[REDACTED]"

            log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class ServiceContextFilter(logging.Filter):
    """Adds the current service name to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        service = service_name_var.get()
        if service:
            record.service = service
        return True


def configure_logging(
    level: str = "INFO",
    format: str = "json",
    redact_fields: Optional[list] = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format ("json" or "text")
        redact_fields: List of field names to redact
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    if format.lower() == "json":
        formatter = JsonFormatter(redact_fields=redact_fields)
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    handler.addFilter(ServiceContextFilter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_service_name() -> Optional[str]:
    return service_name_var.get()


@contextmanager
def service_context(name: str) -> Iterator[None]:
    """Tag every log record emitted inside the block with a service name."""
    token = service_name_var.set(name)
    try:
        yield
    finally:
        service_name_var.reset(token)


class LogTimer:
    """
    Context manager for timing operations and logging duration.

    Usage:
        with LogTimer(logger, "train", library="xgboost"):
            strategy.train(parameters, out)

        # Logs: {"message": "train completed", "duration_ms": 1234.5, "library": "xgboost"}
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        level: int = logging.INFO,
        **extra_fields
    ):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.extra_fields = extra_fields
        self.start_time = None
        self.duration_ms: Optional[float] = None

    def __enter__(self):
        self.start_time = time.monotonic()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.monotonic() - self.start_time) * 1000

        log_data = {
            "duration_ms": round(self.duration_ms, 2),
            **self.extra_fields
        }

        if exc_type is None:
            self.logger.log(
                self.level,
                f"{self.operation} completed",
                extra=log_data
            )
        else:
            log_data["error"] = str(exc_val)
            self.logger.error(
                f"{self.operation} failed",
                extra=log_data,
                exc_info=(exc_type, exc_val, exc_tb)
            )
