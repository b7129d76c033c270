"""Profile API: own profile, public profiles, username checks, legal acceptance."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database.connection import get_db
from ..database.repositories import (
    FollowRepository,
    PostRepository,
    ProfilePostRepository,
    ProfileRepository,
)
from ..exceptions import NotFoundError, PermissionDeniedError
from ..validation import (
    ValidationError,
    validate_age,
    validate_display_name,
    validate_gender,
    validate_username,
)
from ..web.auth import CurrentUser, display_name_for, get_current_user, get_optional_user
from ..web.rate_limit import client_ip

router = APIRouter(prefix="/api", tags=["profiles"])
logger = logging.getLogger(__name__)

PROFILE_PAGE_POSTS = 30
POSTS_PER_SOURCE = 20


class ProfileUpdate(BaseModel):
    """Partial profile update; omitted fields are left untouched."""

    display_name: Optional[Any] = Field(None, description="Shown name, trimmed, non-empty")
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    gender: Optional[Any] = Field(None, description="Up to 32 characters")
    age: Optional[Any] = Field(None, description="1..119 or null")


class UsernameCheck(BaseModel):
    username: Optional[Any] = None


def ensure_profile(repo: ProfileRepository, user: CurrentUser):
    """Load the caller's profile, creating it from token claims when missing."""
    return repo.get_or_create(
        user.id,
        display_name=display_name_for(user),
        username=user.username or None,
    )


@router.get("/profiles/me")
async def get_my_profile(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile = ensure_profile(ProfileRepository(db), user)
    return {"profile": profile.to_dict()}


@router.post("/profiles/me")
async def upsert_my_profile(
    body: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create or update the caller's profile.

    Only fields present in the body are written. On first write the
    display name falls back to the username, email local part or user ID.
    """
    provided = body.model_fields_set
    updates = {}
    if "display_name" in provided:
        updates["display_name"] = validate_display_name(body.display_name)
    if "gender" in provided:
        updates["gender"] = validate_gender(body.gender)
    if "age" in provided:
        updates["age"] = validate_age(body.age)
    if "bio" in provided:
        updates["bio"] = body.bio
    if "avatar_url" in provided:
        updates["avatar_url"] = body.avatar_url

    repo = ProfileRepository(db)
    if repo.exists(user.id):
        profile = repo.update(user.id, updates)
    else:
        fields = {"display_name": display_name_for(user), **updates}
        if user.username and repo.is_username_available(user.username, user.id):
            fields["username"] = user.username
        profile = repo.create(user.id, **fields)

    logger.info("Profile saved", extra={'user_id': user.id})
    return {"profile": profile.to_dict()}


def _profile_post_rows(db: Session, author_id: str, viewer_id: Optional[str]) -> list:
    repo = ProfilePostRepository(db)
    posts = repo.by_author(author_id, include_private=viewer_id == author_id, limit=POSTS_PER_SOURCE)
    ids = [p.id for p in posts]
    replies = repo.reply_counts(ids)
    liked = repo.liked_ids(viewer_id, ids)

    rows = []
    for post in posts:
        row = post.to_dict()
        row.update({
            "source": "profile",
            "media": [{"media_url": url} for url in post.media_urls or []],
            "comments_count": replies.get(post.id, 0),
            "isLiked": post.id in liked,
        })
        rows.append(row)
    return rows


def _community_post_rows(db: Session, author_id: str, viewer_id: Optional[str]) -> list:
    repo = PostRepository(db)
    posts = repo.by_author(author_id, limit=POSTS_PER_SOURCE)
    ids = [p.id for p in posts]
    comments = repo.comment_counts(ids)
    liked = repo.liked_ids(viewer_id, ids)

    rows = []
    for post in posts:
        row = post.to_dict()
        row.update({
            "source": "community",
            "comments_count": comments.get(post.id, 0),
            "isLiked": post.id in liked,
        })
        rows.append(row)
    return rows


@router.get("/profiles/{user_id}")
async def get_profile(
    user_id: str,
    viewer: Optional[CurrentUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Public profile page: profile, follow counts and the latest posts of both kinds."""
    profile = ProfileRepository(db).get(user_id)
    if profile is None:
        raise NotFoundError("Profile not found")

    viewer_id = viewer.id if viewer else None
    follows = FollowRepository(db)
    is_following = bool(viewer_id and viewer_id != user_id and follows.is_following(viewer_id, user_id))

    posts = _profile_post_rows(db, user_id, viewer_id) + _community_post_rows(db, user_id, viewer_id)
    posts.sort(key=lambda p: p["created_at"] or "", reverse=True)

    return {
        "profile": profile.to_dict(),
        "followersCount": follows.count_followers(user_id),
        "followingCount": follows.count_following(user_id),
        "isFollowing": is_following,
        "posts": posts[:PROFILE_PAGE_POSTS],
    }


@router.get("/profiles/{user_id}/followers")
async def get_followers(user_id: str, db: Session = Depends(get_db)):
    ids = FollowRepository(db).follower_ids(user_id)
    return {"users": ProfileRepository(db).summaries(ids)}


@router.get("/profiles/{user_id}/following")
async def get_following(user_id: str, db: Session = Depends(get_db)):
    ids = FollowRepository(db).following_ids(user_id)
    return {"users": ProfileRepository(db).summaries(ids)}


@router.get("/profiles/{user_id}/saved-posts")
async def get_saved_posts(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if user.id != user_id:
        raise PermissionDeniedError()
    return {"savedPosts": PostRepository(db).saved_posts(user_id)}


@router.post("/check-username")
async def check_username(
    body: UsernameCheck,
    viewer: Optional[CurrentUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    if not body.username or not isinstance(body.username, str):
        raise ValidationError("Username is required", field="username")
    try:
        validate_username(body.username)
    except ValidationError as e:
        return JSONResponse({"error": e.message, "available": False}, status_code=400)

    available = ProfileRepository(db).is_username_available(
        body.username, viewer.id if viewer else None
    )
    return {"available": available}


@router.post("/legal/accept")
async def accept_legal(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record acceptance of the terms of service and the risk disclosure."""
    repo = ProfileRepository(db)
    ensure_profile(repo, user)
    repo.accept_legal(
        user.id,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )
    logger.info("Legal terms accepted", extra={'user_id': user.id})
    return {"success": True}
