"""Profile post repository: profile-page posts, their replies and likes."""

from typing import Dict, List, Optional, Sequence

from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import ConflictError, NotFoundError, PermissionDeniedError
from ..models import ProfilePost, ProfilePostLike, ProfilePostReply


class ProfilePostRepository:
    """Repository for posts on a user's profile page."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, post_id: str) -> Optional[ProfilePost]:
        return self.db.query(ProfilePost).filter_by(id=post_id).first()

    def require(self, post_id: str) -> ProfilePost:
        post = self.get(post_id)
        if post is None:
            raise NotFoundError("Post not found")
        return post

    def create(
        self,
        author_id: str,
        content: str,
        media_urls: Sequence[str] = (),
        visibility: str = "profile_only",
    ) -> ProfilePost:
        post = ProfilePost(
            author_id=author_id,
            content=content,
            media_urls=[url for url in media_urls if url],
            visibility=visibility,
            likes_count=0,
        )
        self.db.add(post)
        self.db.commit()
        self.db.refresh(post)
        return post

    def delete(self, post_id: str, user_id: str) -> None:
        """Delete a profile post owned by user_id.

        Raises:
            NotFoundError: Post does not exist
            PermissionDeniedError: Caller is not the author
        """
        post = self.require(post_id)
        if post.author_id != user_id:
            raise PermissionDeniedError("You can only delete your own posts")
        self.db.delete(post)
        self.db.commit()

    def by_author(self, author_id: str, include_private: bool, limit: int = 20) -> List[ProfilePost]:
        query = self.db.query(ProfilePost).filter_by(author_id=author_id)
        if not include_private:
            query = query.filter(ProfilePost.visibility == "public")
        return query.order_by(desc(ProfilePost.created_at)).limit(limit).all()

    def reply_counts(self, post_ids: Sequence[str]) -> Dict[str, int]:
        if not post_ids:
            return {}
        rows = (
            self.db.query(ProfilePostReply.post_id, func.count(ProfilePostReply.id))
            .filter(ProfilePostReply.post_id.in_(post_ids))
            .group_by(ProfilePostReply.post_id)
            .all()
        )
        return dict(rows)

    def liked_ids(self, user_id: Optional[str], post_ids: Sequence[str]) -> set:
        if not user_id or not post_ids:
            return set()
        rows = (
            self.db.query(ProfilePostLike.post_id)
            .filter(ProfilePostLike.user_id == user_id, ProfilePostLike.post_id.in_(post_ids))
            .all()
        )
        return {row[0] for row in rows}

    # Replies

    def replies(self, post_id: str) -> List[ProfilePostReply]:
        return (
            self.db.query(ProfilePostReply)
            .filter_by(post_id=post_id)
            .order_by(ProfilePostReply.created_at)
            .all()
        )

    def add_reply(self, post_id: str, author_id: str, content: str) -> ProfilePostReply:
        self.require(post_id)
        reply = ProfilePostReply(post_id=post_id, author_id=author_id, content=content)
        self.db.add(reply)
        self.db.commit()
        self.db.refresh(reply)
        return reply

    # Likes

    def _refresh_likes_count(self, post: ProfilePost) -> int:
        post.likes_count = self.db.query(ProfilePostLike).filter_by(post_id=post.id).count()
        self.db.commit()
        return post.likes_count

    def like(self, post_id: str, user_id: str) -> int:
        post = self.require(post_id)
        if self.liked_ids(user_id, [post_id]):
            raise ConflictError("Already liked")

        self.db.add(ProfilePostLike(post_id=post_id, user_id=user_id))
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Already liked") from e
        return self._refresh_likes_count(post)

    def unlike(self, post_id: str, user_id: str) -> int:
        post = self.require(post_id)
        self.db.query(ProfilePostLike).filter_by(post_id=post_id, user_id=user_id).delete(
            synchronize_session=False
        )
        return self._refresh_likes_count(post)
