"""Strategies API: AI strategy CRUD, presets and the cadence normalizer."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import CoreboundConfig
from ..credentials import encrypt_credential
from ..database.connection import get_db
from ..database.repositories import ApiKeyRepository, StrategyRepository
from ..exceptions import NotFoundError
from ..strategy import (
    STRATEGY_PRESETS,
    apply_preset,
    check_minimum_cadence,
    format_cadence,
    migrate_filters,
    split_cadence,
    total_cadence_seconds,
    validate_filters,
    with_numeric_cadence,
)
from ..validation import ValidationError
from ..web.auth import CurrentUser, get_config, get_current_user
from ..web.csrf import require_valid_origin

router = APIRouter(prefix="/api/strategies", tags=["strategies"])
logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "model_provider", "model_name", "prompt", "filters", "saved_api_key_id")


class StrategyCreate(BaseModel):
    name: Optional[str] = None
    model_provider: Optional[str] = None
    model_name: Optional[str] = None
    prompt: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None
    api_key: Optional[str] = None
    saved_api_key_id: Optional[str] = None
    use_platform_key: bool = False


class StrategyUpdate(BaseModel):
    name: Optional[str] = None
    model_provider: Optional[str] = None
    model_name: Optional[str] = None
    prompt: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None
    saved_api_key_id: Optional[str] = None


class CadenceInput(BaseModel):
    hours: Any = 0
    minutes: Any = 0
    seconds: Any = 0


def _serialize(strategy) -> dict:
    row = strategy.to_dict()
    row["filters"] = migrate_filters(strategy.filters)
    return row


def _check_filters(filters: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    check_minimum_cadence(filters)
    if filters:
        validate_filters(migrate_filters(filters))
    return with_numeric_cadence(filters)


@router.get("")
async def list_strategies(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    strategies = StrategyRepository(db).list_for_user(user.id)
    return {"strategies": [_serialize(s) for s in strategies]}


@router.post("", status_code=201)
async def create_strategy(
    body: StrategyCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: CoreboundConfig = Depends(get_config),
):
    """Create a strategy backed by a pasted key, a saved key or the platform key."""
    if not body.name or not body.model_provider or not body.model_name or not body.prompt:
        raise ValidationError("Missing required fields: name, model_provider, model_name, prompt")

    fields: Dict[str, Any] = {}
    if body.api_key and body.api_key.strip():
        fields["api_key_ciphertext"] = encrypt_credential(body.api_key.strip(), config)
    elif body.saved_api_key_id:
        if ApiKeyRepository(db).get_owned(body.saved_api_key_id, user.id) is None:
            raise NotFoundError("Key not found")
        fields["saved_api_key_id"] = body.saved_api_key_id
    elif body.use_platform_key:
        fields["use_platform_key"] = True
    else:
        raise ValidationError("API Key is required to call the GenAI API", field="api_key")

    filters = _check_filters(body.filters)

    strategy = StrategyRepository(db).create(
        user.id,
        name=body.name,
        model_provider=body.model_provider,
        model_name=body.model_name,
        prompt=body.prompt,
        filters=filters or {},
        **fields,
    )
    logger.info(f"Created strategy {strategy.id}", extra={'user_id': user.id})
    return {"strategy": _serialize(strategy)}


@router.get("/presets")
async def list_presets():
    return {"presets": STRATEGY_PRESETS}


@router.get("/presets/{mode}")
async def get_preset(mode: str):
    return {"preset": apply_preset(mode)}


@router.post("/cadence")
async def normalize_cadence(body: CadenceInput):
    """Fold form fields into seconds and back into canonical parts."""
    seconds = total_cadence_seconds(body.hours, body.minutes, body.seconds)
    parts = split_cadence(seconds)
    return {
        "cadenceSeconds": seconds,
        "parts": parts.to_dict(),
        "display": format_cadence(parts.hours, parts.minutes, parts.seconds),
    }


@router.get("/{strategy_id}")
async def get_strategy(
    strategy_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    strategy = StrategyRepository(db).get(strategy_id, user.id)
    if strategy is None:
        raise NotFoundError("Strategy not found")
    return {"strategy": _serialize(strategy)}


@router.patch("/{strategy_id}", dependencies=[Depends(require_valid_origin)])
async def update_strategy(
    strategy_id: str,
    body: StrategyUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Partial update; saving always switches the strategy to the platform key."""
    updates = {field: getattr(body, field) for field in UPDATABLE_FIELDS if field in body.model_fields_set}
    if "filters" in updates:
        updates["filters"] = _check_filters(updates["filters"]) or {}
    if updates.get("saved_api_key_id") and ApiKeyRepository(db).get_owned(updates["saved_api_key_id"], user.id) is None:
        raise NotFoundError("Key not found")
    updates["use_platform_key"] = True

    strategy = StrategyRepository(db).update(strategy_id, user.id, updates)
    if strategy is None:
        raise NotFoundError("Strategy not found")
    return {"strategy": _serialize(strategy)}


@router.delete("/{strategy_id}", dependencies=[Depends(require_valid_origin)])
async def delete_strategy(
    strategy_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not StrategyRepository(db).delete(strategy_id, user.id):
        raise NotFoundError("Strategy not found")
    return {"success": True, "message": "Strategy deleted successfully"}
