"""
Forward Proxy - Structured Logging Configuration

Configures logging for the proxy VM and its tooling:
- JSON format (python-json-logger) for aggregation
- Plain text format for interactive use
- Optional rotating file handler

Modules log through ``logging.getLogger(__name__)`` with an ``extra``
dict whose ``event`` key names what happened; the JSON formatter turns
those extras into top-level fields.

Usage:
    from forward_proxy.core.logging_config import setup_logging

    logger = setup_logging(name="forward_proxy", level="DEBUG", json_format=True)
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

from pythonjsonlogger.json import JsonFormatter

from . import config

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class CustomJsonFormatter(JsonFormatter):
    """
    JSON formatter with service and source context.

    Adds timestamp, level, service name and source location to all records.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name: str = "forward_proxy",
    ):
        super().__init__(fmt=fmt)
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        if "timestamp" not in log_record or log_record["timestamp"] is None:
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        if "level" not in log_record or log_record["level"] is None:
            log_record["level"] = record.levelname.lower()

        log_record["service"] = self.service_name
        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "forward_proxy",
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
    log_file: Optional[str] = None,
    stream=None,
    settings: Optional[config.ProxyConfig] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure a logger hierarchy.

    Args:
        name: Logger name (``forward_proxy`` covers the whole package)
        level: Logging level; defaults to ``settings.log_level``
        json_format: JSON output; defaults to ``settings.log_json``
        log_file: Optional rotating log file; defaults to ``settings.log_file``
        stream: Console stream (stderr by default)
        settings: Source of the defaults above; ``ProxyConfig()`` when omitted
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Configured logger instance
    """
    settings = settings or config.ProxyConfig()
    level = (level or settings.log_level).upper()
    json_format = settings.log_json if json_format is None else json_format
    log_file = log_file if log_file is not None else settings.log_file

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    if json_format:
        formatter: logging.Formatter = CustomJsonFormatter(service_name=name.split(".")[0])
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(getattr(logging, level))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setLevel(getattr(logging, level))
        # Files are always JSON for aggregation
        file_handler.setFormatter(CustomJsonFormatter(service_name=name.split(".")[0]))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get or create a logger with standard configuration.

    Args:
        name: Logger name
        level: Logging level

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    # Only configure if not already configured
    if not logger.handlers:
        return setup_logging(name=name, level=level)

    return logger
