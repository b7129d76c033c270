"""
Custom exception hierarchy for Corebound.

All application exceptions derive from CoreboundError for easy catching.
Each carries the HTTP status the API layer answers with.
Organized by domain: Configuration, Access, Resources, Credentials, Exchange.
"""

from typing import Optional


class CoreboundError(Exception):
    """Base exception for all Corebound errors."""

    status_code = 500

    def __init__(self, message: str = "Internal server error", status_code: Optional[int] = None):
        """
        Initialize error with an optional status override.

        Args:
            message: Error message returned to the client as {"error": message}
            status_code: HTTP status, defaults to the class status
        """
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(CoreboundError):
    """Configuration-related errors (env vars, settings)."""
    pass


class MissingCredentialError(ConfigurationError):
    """Required secret not found in Docker secrets or environment."""
    pass


# ============================================================================
# Access Errors (Authentication, Authorization, Throttling)
# ============================================================================

class AuthenticationError(CoreboundError):
    """Request carries no valid user token."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class PermissionDeniedError(CoreboundError):
    """Authenticated user may not act on this resource."""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class RateLimitExceededError(CoreboundError):
    """Caller exceeded a fixed-window rate limit."""

    status_code = 429

    def __init__(self, message: str = "Too many requests", retry_after_ms: int = 0):
        self.retry_after_ms = retry_after_ms
        super().__init__(message)


# ============================================================================
# Resource Errors
# ============================================================================

class NotFoundError(CoreboundError):
    """Requested row does not exist or is not visible to the caller."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ConflictError(CoreboundError):
    """Unique constraint would be violated (duplicate like, follow, key...)."""

    status_code = 409


class GoneError(CoreboundError):
    """Endpoint retired in favour of another flow."""

    status_code = 410


# ============================================================================
# Credential Errors
# ============================================================================

class CredentialError(CoreboundError):
    """Stored credential could not be encrypted or decrypted."""
    pass


# ============================================================================
# Exchange Errors (Hyperliquid, Coinbase)
# ============================================================================

class ExchangeError(CoreboundError):
    """External exchange communication errors."""

    status_code = 502


class ExchangeConnectionError(ExchangeError):
    """Cannot reach exchange API."""
    pass


class ExchangeAccountNotFoundError(ExchangeError):
    """Exchange answered but knows nothing about this account."""

    status_code = 400
