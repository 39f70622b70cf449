"""
Logging configuration
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from core.config import settings

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class PipelineJsonFormatter(JsonFormatter):
    """
    JSON formatter that always carries timestamp, level and logger name.

    Structured pipeline fields passed through ``extra`` (phase, entity,
    row_index, error_kind, ...) become top-level keys of the record.
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


def setup_logging(level: str = None, format_type: str = None):
    """Configure application logging"""

    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    format_type = (format_type or settings.LOG_FORMAT).lower()

    handler = logging.StreamHandler(sys.stdout)
    if format_type == "json":
        handler.setFormatter(PipelineJsonFormatter("%(message)s"))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    # Configure root logger
    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    # Set SQLAlchemy logging to WARNING to reduce noise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {level_name} level ({format_type})")
