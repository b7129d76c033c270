"""Per-request logging context.

The correlation ID and the authenticated user ID live in contextvars so
they follow a request through sync and async code alike. CorrelationFilter
copies them onto each log record.

Usage:
    from corebound.logging import LogContext

    LogContext.set_correlation_id(request_id)
    LogContext.set_user_id(user.id)
    logger.info("Strategy saved")  # carries both IDs
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional


correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)


class LogContext:
    """Read and write the logging context of the current request."""

    @staticmethod
    def set_correlation_id(correlation_id: str):
        correlation_id_var.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> Optional[str]:
        return correlation_id_var.get()

    @staticmethod
    def generate_correlation_id() -> str:
        """Generate a new correlation ID.

        Returns:
            UUID4 string
        """
        return str(uuid.uuid4())

    @staticmethod
    def set_user_id(user_id: Optional[str]):
        """Attach the authenticated user to subsequent log records.

        Example:
            >>> LogContext.set_user_id("7c1e...")
            >>> logger.info("Profile updated")  # includes user_id
        """
        user_id_var.set(user_id)

    @staticmethod
    def get_user_id() -> Optional[str]:
        return user_id_var.get()

    @staticmethod
    def clear():
        """Reset both IDs, used when a request finishes."""
        correlation_id_var.set(None)
        user_id_var.set(None)


class CorrelationFilter(logging.Filter):
    """Inject correlation_id and user_id from context into log records.

    Values passed explicitly through ``extra`` win over the context.
    """

    def filter(self, record):
        correlation_id = LogContext.get_correlation_id()
        if correlation_id and not hasattr(record, 'correlation_id'):
            record.correlation_id = correlation_id

        user_id = LogContext.get_user_id()
        if user_id and not hasattr(record, 'user_id'):
            record.user_id = user_id
        return True
