"""Structured JSON logging for the Corebound API.

Every record is emitted as one JSON object on stdout (and optionally a
file) so request logs can be queried by correlation ID, user or session.

Usage:
    from corebound.logging import setup_json_logging

    setup_json_logging(log_level="INFO")

    logger.info("Session started", extra={
        'user_id': user.id,
        'session_id': session.id,
    })
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

from .log_context import CorrelationFilter

NOISY_LOGGERS = ("ccxt", "aiohttp", "urllib3", "sqlalchemy.engine", "httpx", "httpcore")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding level, logger, correlation and user context."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name

        for attr in ('correlation_id', 'user_id', 'session_id'):
            value = getattr(record, attr, None)
            if value is not None:
                log_record[attr] = value


def setup_json_logging(log_level: str = "INFO", log_file: Optional[str] = None, stream=None):
    """Configure root logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of an additional JSON log file
        stream: Console stream, stdout by default

    Example:
        >>> setup_json_logging(log_level="DEBUG", log_file="logs/api.json.log")
    """
    formatter = CustomJsonFormatter(
        fmt='%(timestamp)s %(level)s %(name)s %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S'
    )
    correlation_filter = CorrelationFilter()

    handlers = []

    # stdout for container logs
    console_handler = logging.StreamHandler(stream or sys.stdout)
    handlers.append(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    root_logger = logging.getLogger()
    # reconfiguring replaces earlier handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(correlation_filter)
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info("Structured JSON logging initialized", extra={'log_level': log_level})
