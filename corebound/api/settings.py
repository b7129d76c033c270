"""Settings API: saved AI provider keys."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import CoreboundConfig
from ..credentials import encrypt_credential, key_preview
from ..database.connection import get_db
from ..database.repositories import ApiKeyRepository
from ..validation import ValidationError, validate_ai_provider, validate_api_key_label
from ..web.auth import CurrentUser, get_config, get_current_user

router = APIRouter(prefix="/api/settings", tags=["settings"])
logger = logging.getLogger(__name__)

MIN_API_KEY_LENGTH = 10


class ApiKeyCreate(BaseModel):
    provider: Optional[Any] = None
    label: Optional[Any] = None
    api_key: Optional[str] = None


@router.get("/api-keys")
async def list_api_keys(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    keys = ApiKeyRepository(db).list_for_user(user.id)
    return {"keys": [k.to_dict() for k in keys]}


@router.post("/api-keys", status_code=201)
async def create_api_key(
    body: ApiKeyCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: CoreboundConfig = Depends(get_config),
):
    """Encrypt and save an AI provider key; only a preview is ever returned."""
    if not body.provider or not body.label or not body.api_key:
        raise ValidationError("Missing required fields: provider, label, api_key")

    provider = validate_ai_provider(body.provider)
    label = validate_api_key_label(body.label)

    api_key = body.api_key.strip()
    if len(api_key) < MIN_API_KEY_LENGTH:
        raise ValidationError("API key appears to be invalid (too short)", field="api_key")

    key = ApiKeyRepository(db).create(
        user.id,
        provider,
        label,
        encrypted_key=encrypt_credential(api_key, config),
        key_preview=key_preview(api_key),
    )
    logger.info(f"Saved {provider} API key", extra={'user_id': user.id})
    return {"key": key.to_dict()}


@router.delete("/api-keys/{key_id}")
async def delete_api_key(
    key_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ApiKeyRepository(db).delete(key_id, user.id)
    return {"success": True}
