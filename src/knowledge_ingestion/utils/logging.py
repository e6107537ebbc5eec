"""Logging configuration for the Knowledge Ingestion service."""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

from knowledge_ingestion.config import get_settings

# Request ID context variable for tracking requests across async operations
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Document ID of the ingestion run executing in the current task
document_id_var: ContextVar[Optional[str]] = ContextVar("document_id", default=None)

_logger: Optional[logging.Logger] = None

# Attributes every LogRecord carries; anything else was passed through `extra`
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "extra_fields", "request_id", "document_id"}

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "fastapi", "httpx", "aio_pika", "aiormq", "azure")


class ContextFilter(logging.Filter):
    """Stamp each record with the current request and document IDs."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        if not hasattr(record, "document_id"):
            record.document_id = document_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in ("request_id", "document_id"):
            value = getattr(record, key, None)
            if value:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(getattr(record, "extra_fields", {}))
        log_data.update(
            {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        )

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] [%(document_id)s] - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        # Records emitted before the filter ran (or outside a request) still format
        record.request_id = getattr(record, "request_id", None) or "N/A"
        record.document_id = getattr(record, "document_id", None) or "-"
        return super().format(record)


def setup_logging() -> logging.Logger:
    """
    Configure the service logger once per process.

    Production emits one JSON object per line; every other environment uses
    the readable format. Both include the request and document IDs.
    """
    global _logger

    if _logger is not None:
        return _logger

    settings = get_settings()
    level = getattr(logging, settings.log_level)

    logger = logging.getLogger("knowledge_ingestion")
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JSONFormatter() if settings.is_production else StandardFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )

    _logger = logger
    logger.info(
        f"Logging configured: level={settings.log_level}, "
        f"environment={settings.environment.value}, "
        f"format={'JSON' if settings.is_production else 'Standard'}"
    )
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger namespaced under knowledge_ingestion."""
    if name:
        return logging.getLogger(f"knowledge_ingestion.{name}")
    return logging.getLogger("knowledge_ingestion")


def set_request_id(request_id: str) -> None:
    """Set the request ID for the current context."""
    request_id_var.set(request_id)


def log_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    """Log a completed HTTP request."""
    get_logger("http").info(
        f"{method} {path} - {status_code} - {duration_ms:.2f}ms",
        extra={
            "extra_fields": {
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                **kwargs,
            }
        },
    )


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> None:
    """Log an error with its type, message and context."""
    get_logger("error").error(
        f"Error: {type(error).__name__}: {error}",
        exc_info=True,
        extra={
            "extra_fields": {
                "error_type": type(error).__name__,
                "error_message": str(error),
                "context": context or {},
                **kwargs,
            }
        },
    )
