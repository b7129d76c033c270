"""Origin checks for state-changing routes.

Browsers send Origin (or at least Referer) on cross-site writes, so a
request carrying neither, or carrying a foreign one, is refused.
"""

import logging
from typing import List, Optional
from urllib.parse import urlsplit

from fastapi import Depends, Request

from ..config import CoreboundConfig
from ..exceptions import PermissionDeniedError
from .auth import get_config

logger = logging.getLogger(__name__)

DEV_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")

# Webhooks, cron and OAuth callbacks authenticate by other means
BYPASS_PREFIXES = ("/api/webhooks/stripe", "/api/cron/", "/api/auth/callback")


def allowed_origins(config: CoreboundConfig) -> List[str]:
    origins = [config.app_url, *DEV_ORIGINS]
    return [o.rstrip("/") for o in origins if o]


def should_bypass(path: str) -> bool:
    return any(path.startswith(prefix) for prefix in BYPASS_PREFIXES)


def _referer_origin(referer: str) -> Optional[str]:
    parts = urlsplit(referer)
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def check_origin(request: Request, config: CoreboundConfig) -> None:
    """Raise PermissionDeniedError unless the request comes from an allowed origin."""
    if should_bypass(request.url.path):
        return

    origin = request.headers.get("origin")
    referer = request.headers.get("referer")

    if not origin and not referer:
        logger.warning("Blocked request: both Origin and Referer headers are missing")
        raise PermissionDeniedError("Origin header required")

    request_origin = origin or _referer_origin(referer)
    if request_origin and request_origin.rstrip("/") not in allowed_origins(config):
        logger.warning(f"Blocked request from origin: {request_origin}")
        raise PermissionDeniedError("Invalid origin")


def require_valid_origin(request: Request, config: CoreboundConfig = Depends(get_config)) -> None:
    """Dependency form of check_origin."""
    check_origin(request, config)
