"""JSON logging for the comparison service.

Log calls pass a short snake_case message and repeat it as ``event`` in
``extra`` together with any structured fields.
"""

import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from rankinsight.core.config import settings

QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "asyncio": logging.WARNING,
}


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Stamp every record with time, level, origin and deployment."""

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = settings.PROJECT_NAME
        log_record["env"] = settings.ENV
        log_record.setdefault("event", record.getMessage())
        log_record.pop("asctime", None)


def setup_logging(level: str | None = None) -> None:
    """Send JSON lines to stdout at ``level`` (defaults to LOG_LEVEL)."""
    root = logging.getLogger()
    level_name = (level or settings.LOG_LEVEL).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S"))
    root.handlers.clear()
    root.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
