"""Support intake API: contact form and browser error reports."""

import asyncio
import json
import logging
import re
from typing import Any, Dict, Optional

import aiohttp
from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import CoreboundConfig
from ..database.connection import get_db
from ..database.repositories import ProfileRepository, SupportRepository
from ..exceptions import CoreboundError, RateLimitExceededError
from ..validation import ValidationError, validate_email
from ..web.auth import CurrentUser, get_config, get_optional_user
from ..web.rate_limit import RateLimiter, client_ip
from .deps import get_rate_limiter

router = APIRouter(prefix="/api", tags=["support"])
logger = logging.getLogger(__name__)

RULE = "━" * 24
SESSION_PATH = re.compile(r"/dashboard/sessions/([^/]+)")


class ContactForm(BaseModel):
    email: Optional[Any] = None
    subject: Optional[str] = None
    message: Optional[str] = None


def format_contact_message(
    email: str,
    message: str,
    username: Optional[str] = None,
    account_email: Optional[str] = None,
    signed_in: bool = False,
) -> str:
    """Prefix the message with who sent it, for the support inbox."""
    if signed_in:
        header = (
            f"{RULE}\nLOGGED-IN USER INFO:\n{RULE}\n"
            f"Username: {username or 'N/A'}\n"
            f"Account Email: {account_email or 'N/A'}\n\n"
        )
    else:
        header = f"{RULE}\nAnonymous User (Not Logged In)\n"
    return f"{header}{RULE}\nCONTACT EMAIL: {email}\n{RULE}\n\nMESSAGE:\n{message}"


async def relay_contact(endpoint: str, payload: Dict[str, Any], timeout_seconds: float = 10) -> None:
    """POST the submission to the form relay.

    Raises:
        CoreboundError: If the relay is unreachable or rejects the submission
    """
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(endpoint, json=payload, headers={"Accept": "application/json"}) as response:
                data = await response.json(content_type=None)
                if response.status >= 400:
                    logger.error(f"Contact relay error: {data}")
                    error = data.get("error") if isinstance(data, dict) else None
                    raise CoreboundError(error or "Failed to send message. Please try again.", status_code=500)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.error(f"Contact relay unreachable: {e}")
        raise CoreboundError("Failed to send message. Please try again.", status_code=500) from e


@router.post("/contact")
async def submit_contact(
    body: ContactForm,
    request: Request,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    config: CoreboundConfig = Depends(get_config),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Store a contact submission and forward it to the support inbox."""
    result = limiter.check(
        f"contact:{client_ip(request)}", config.contact_rate_limit, config.contact_rate_window_seconds
    )
    if result.limited:
        raise RateLimitExceededError(
            "Too many submissions. Please try again later.", retry_after_ms=result.retry_after_ms
        )

    if not body.email or not body.subject or not body.message:
        raise ValidationError("All fields are required")
    email = validate_email(body.email)

    username = None
    account_email = None
    if user is not None:
        account_email = user.email
        profile = ProfileRepository(db).get(user.id)
        if profile:
            username = profile.display_name or profile.username
        logger.info(f"Contact submission from {username or user.id}", extra={'user_id': user.id})
    else:
        logger.info("Anonymous contact submission")

    SupportRepository(db).add_contact(
        email,
        body.subject,
        body.message,
        user_id=user.id if user else None,
        account_email=account_email,
        username=username,
    )

    if config.contact_endpoint:
        await relay_contact(
            config.contact_endpoint,
            {
                "email": email,
                "subject": body.subject,
                "message": format_contact_message(
                    email, body.message, username, account_email, signed_in=user is not None
                ),
                "_replyto": email,
                "_subject": f"Corebound Contact: {body.subject}",
            },
        )
    else:
        logger.warning("FORMSPREE_ENDPOINT not set; contact submission stored only")

    return {"success": True}


def _text(value: Any) -> Optional[str]:
    """Text column value for an arbitrary JSON field, None when empty."""
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _first(data: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        if data.get(key):
            return _text(data[key])
    return None


def _json_field(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value or None


def session_id_from_path(path: Optional[str]) -> Optional[str]:
    """Session id embedded in a /dashboard/sessions/{id} path."""
    match = SESSION_PATH.search(path or "")
    return match.group(1) if match else None


@router.post("/client-error")
async def report_client_error(
    report: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    """Record a browser error report. Storage problems never reach the client."""
    path = _first(report, "route", "path")
    logger.error(f"Client error at {path}: {report.get('message')}", extra={'client_error': report})

    fields = {
        "path": path,
        "message": _text(report.get("message")),
        "stack": _text(report.get("stack")),
        "component_stack": _first(report, "componentStack", "component_stack"),
        "user_agent": _first(report, "userAgent", "user_agent"),
        "digest": _text(report.get("digest")),
        "error_boundary": _first(report, "errorBoundary", "error_boundary"),
        "full_error": _json_field(report.get("fullError")),
        "full_error_info": _json_field(report.get("fullErrorInfo")),
        "user_id": _first(report, "userId", "user_id"),
        "session_id": session_id_from_path(path) or _text(report.get("session_id")),
    }
    try:
        SupportRepository(db).add_client_error(**fields)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to store client error: {e}")

    return {"received": True}
