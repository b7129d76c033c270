"""Profile posts API: posts on a user's own page, with replies and likes."""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database.connection import get_db
from ..database.repositories import ProfilePostRepository, ProfileRepository
from ..validation import ValidationError, validate_visibility
from ..web.auth import CurrentUser, get_current_user
from .profiles import ensure_profile

router = APIRouter(prefix="/api/profile-posts", tags=["profile-posts"])


class ProfilePostCreate(BaseModel):
    content: Optional[str] = None
    media_urls: List[Optional[str]] = Field(default_factory=list)
    visibility: Any = "profile_only"


class ReplyCreate(BaseModel):
    content: Optional[str] = None


def _content(value: Optional[str]) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError("Content is required", field="content")
    return text


@router.post("", status_code=201)
async def create_profile_post(
    body: ProfilePostCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    content = _content(body.content)
    visibility = validate_visibility(body.visibility)
    ensure_profile(ProfileRepository(db), user)

    post = ProfilePostRepository(db).create(
        user.id,
        content,
        media_urls=[url.strip() for url in body.media_urls if url and url.strip()],
        visibility=visibility,
    )
    return {"post": post.to_dict()}


@router.delete("/{post_id}")
async def delete_profile_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ProfilePostRepository(db).delete(post_id, user.id)
    return {"success": True}


@router.get("/{post_id}/replies")
async def list_replies(post_id: str, db: Session = Depends(get_db)):
    """Replies oldest first, each with its author summary."""
    replies = ProfilePostRepository(db).replies(post_id)
    authors = ProfileRepository(db).get_many(r.author_id for r in replies)

    rows = []
    for reply in replies:
        row = reply.to_dict()
        author = authors.get(reply.author_id)
        row["author"] = author.to_summary() if author else None
        rows.append(row)
    return {"replies": rows}


@router.post("/{post_id}/replies", status_code=201)
async def create_reply(
    post_id: str,
    body: ReplyCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    content = _content(body.content)
    repo = ProfilePostRepository(db)
    repo.require(post_id)
    profile = ensure_profile(ProfileRepository(db), user)

    reply = repo.add_reply(post_id, user.id, content)
    row = reply.to_dict()
    row["author"] = profile.to_summary()
    return {"reply": row}


@router.post("/{post_id}/like")
async def like_profile_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    likes = ProfilePostRepository(db).like(post_id, user.id)
    return {"success": True, "liked": True, "likesCount": likes}


@router.delete("/{post_id}/like")
async def unlike_profile_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    likes = ProfilePostRepository(db).unlike(post_id, user.id)
    return {"success": True, "liked": False, "likesCount": likes}
