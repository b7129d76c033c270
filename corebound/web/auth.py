"""Bearer token authentication.

Access tokens are Supabase-style HS256 JWTs: ``sub`` is the user ID,
``email`` the account email, and ``user_metadata.username`` the username
chosen at sign-up.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, Request

from ..config import CoreboundConfig
from ..exceptions import AuthenticationError
from ..logging.log_context import LogContext

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


@dataclass
class CurrentUser:
    """Authenticated caller."""

    id: str
    email: Optional[str] = None
    username: Optional[str] = None


def get_config(request: Request) -> CoreboundConfig:
    """Application config stored on app.state by create_app."""
    return request.app.state.config


def decode_access_token(token: str, config: CoreboundConfig) -> CurrentUser:
    """Validate a JWT and build the caller from its claims.

    Raises:
        AuthenticationError: Expired, malformed or wrongly signed token
    """
    if not config.jwt_secret:
        logger.error("SUPABASE_JWT_SECRET is not configured; rejecting token")
        raise AuthenticationError("Invalid token")

    options = {"verify_aud": bool(config.jwt_audience)}
    try:
        claims = jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            audience=config.jwt_audience or None,
            options=options,
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError("Invalid token") from e

    user_id = claims.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token")

    metadata = claims.get("user_metadata") or {}
    return CurrentUser(id=user_id, email=claims.get("email"), username=metadata.get("username"))


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(request: Request, config: CoreboundConfig = Depends(get_config)) -> CurrentUser:
    """Dependency: the authenticated caller, or 401."""
    token = _bearer_token(request)
    if token is None:
        raise AuthenticationError()

    user = decode_access_token(token, config)
    LogContext.set_user_id(user.id)
    return user


def get_optional_user(
    request: Request,
    config: CoreboundConfig = Depends(get_config),
) -> Optional[CurrentUser]:
    """Dependency: the caller when a valid token is present, else None."""
    token = _bearer_token(request)
    if token is None:
        return None
    try:
        user = decode_access_token(token, config)
    except AuthenticationError as e:
        logger.debug(f"Ignoring bad token on public route: {e.message}")
        return None
    LogContext.set_user_id(user.id)
    return user


def display_name_for(user: CurrentUser) -> str:
    """Username, else the email local part, else "User <id prefix>"."""
    if user.username:
        return user.username
    if user.email:
        return user.email.split("@")[0]
    return f"User {user.id[:8]}"
