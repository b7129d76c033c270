"""Follow API."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database.connection import get_db
from ..database.repositories import FollowRepository, ProfileRepository
from ..exceptions import NotFoundError
from ..validation import ValidationError
from ..web.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/api/follow", tags=["follow"])


class FollowRequest(BaseModel):
    following_id: Optional[str] = None


def _require_target(body: FollowRequest) -> str:
    if not body.following_id:
        raise ValidationError("following_id is required", field="following_id")
    return body.following_id


@router.post("", status_code=201)
async def follow_user(
    body: FollowRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    target = _require_target(body)
    if target == user.id:
        raise ValidationError("Cannot follow yourself", field="following_id")
    if not ProfileRepository(db).exists(target):
        raise NotFoundError("User not found")

    FollowRepository(db).follow(user.id, target)
    return {"success": True}


@router.delete("")
async def unfollow_user(
    body: FollowRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    FollowRepository(db).unfollow(user.id, _require_target(body))
    return {"success": True}


@router.get("")
async def list_following(
    user_id: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """IDs followed by user_id (the caller when omitted)."""
    return {"following_ids": FollowRepository(db).following_ids(user_id or user.id)}
