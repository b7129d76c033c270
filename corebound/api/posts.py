"""Community posts API: feed, likes, saves and threaded comments."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database.connection import get_db
from ..database.repositories import PostRepository
from ..validation import ValidationError
from ..web.auth import CurrentUser, get_current_user, get_optional_user

router = APIRouter(prefix="/api", tags=["posts"])


class PostCreate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    media_urls: List[str] = Field(default_factory=list)


class CommentCreate(BaseModel):
    body: Optional[str] = None
    parent_comment_id: Optional[str] = None


@router.get("/posts")
async def list_posts(
    viewer: Optional[CurrentUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Latest 50 posts with author, counts and the viewer's like/save flags."""
    repo = PostRepository(db)
    return {"posts": repo.feed_rows(repo.recent(), viewer.id if viewer else None)}


@router.post("/posts", status_code=201)
async def create_post(
    body: PostCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    title = (body.title or "").strip()
    text = (body.body or "").strip()
    if not title or not text:
        raise ValidationError("Title and body are required")

    post = PostRepository(db).create(user.id, title, text, body.media_urls)
    return {"post": post.to_dict()}


@router.post("/posts/{post_id}/like")
async def like_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    likes = PostRepository(db).like(post_id, user.id)
    return {"success": True, "liked": True, "likesCount": likes}


@router.delete("/posts/{post_id}/like")
async def unlike_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    likes = PostRepository(db).unlike(post_id, user.id)
    return {"success": True, "liked": False, "likesCount": likes}


@router.post("/posts/{post_id}/save")
async def save_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    PostRepository(db).save(post_id, user.id)
    return {"success": True, "saved": True}


@router.delete("/posts/{post_id}/save")
async def unsave_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    PostRepository(db).unsave(post_id, user.id)
    return {"success": True, "saved": False}


@router.get("/posts/{post_id}/comments")
async def list_comments(post_id: str, db: Session = Depends(get_db)):
    repo = PostRepository(db)
    repo.require(post_id)
    return {"comments": repo.comments_tree(post_id)}


@router.post("/posts/{post_id}/comments", status_code=201)
async def create_comment(
    post_id: str,
    body: CommentCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    text = (body.body or "").strip()
    if not text:
        raise ValidationError("Comment body is required", field="body")

    comment = PostRepository(db).add_comment(post_id, user.id, text, body.parent_comment_id)
    return {"comment": comment.to_dict()}


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    PostRepository(db).delete_comment(comment_id, user.id)
    return {"message": "Comment deleted successfully"}
