"""Structured JSON logging with request correlation."""

from .json_logger import setup_json_logging, CustomJsonFormatter
from .log_context import LogContext, CorrelationFilter, correlation_id_var, user_id_var

__all__ = [
    "setup_json_logging",
    "CustomJsonFormatter",
    "LogContext",
    "CorrelationFilter",
    "correlation_id_var",
    "user_id_var",
]
