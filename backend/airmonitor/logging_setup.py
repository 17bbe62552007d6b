"""
Structured Logging Setup

Consistent logging configuration for the API and its background tasks.
Uses JSON format for structured logs in production.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Package logger - every module logger (airmonitor.*) inherits its handler
ROOT_LOGGER_NAME = "airmonitor"

_STANDARD_ATTRS = (
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "service",
    "message", "taskName",
)


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging"""

    def __init__(self, service: str = "api"):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service", self.service),
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(
    service_name: str = "api",
    log_level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """
    Set up structured logging for the package.

    Args:
        service_name: Name stamped on every JSON record (e.g., "api", "health")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format (True for production, False for dev)

    Returns:
        The configured package logger
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(numeric_level)

    # Clear existing handlers so repeated calls (tests, reload) don't duplicate output
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)

    if json_format:
        formatter = JsonFormatter(service_name)
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


class LogContext:
    """
    Context manager for adding temporary context to logs.

    Usage:
        with LogContext(device_id="abc", operation="ingest"):
            logger.info("Storing readings")
    """

    def __init__(self, **context: Any):
        self.context = context
        self._original_factory = None

    def __enter__(self):
        self._original_factory = logging.getLogRecordFactory()
        original = self._original_factory
        context = self.context

        def record_factory(*args, **kwargs):
            record = original(*args, **kwargs)
            for key, value in context.items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        logging.setLogRecordFactory(self._original_factory)
        return False


def log_alert(
    logger: logging.Logger,
    device_id: str,
    sensor_type: str,
    severity: str,
    value: float,
    threshold: float,
) -> None:
    """Log an alert event at a level matching its severity"""
    log_method = {
        "low": logger.info,
        "medium": logger.warning,
        "high": logger.error,
        "critical": logger.critical,
    }.get(severity, logger.warning)

    log_method(
        f"ALERT [{severity.upper()}] {device_id} {sensor_type}={value} (threshold {threshold})",
        extra={
            "device_id": device_id,
            "sensor_type": sensor_type,
            "severity": severity,
            "value": value,
            "threshold": threshold,
        },
    )
