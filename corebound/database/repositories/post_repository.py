"""Community post repository: posts, media, likes, saves and comments."""

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import ConflictError, NotFoundError, PermissionDeniedError
from ..models import Comment, Post, PostLike, PostMedia, Profile, SavedPost

logger = logging.getLogger(__name__)

FEED_LIMIT = 50


class PostRepository:
    """Repository for community posts and their engagement.

    Like counts are recomputed from the like rows on every change, so the
    stored likes_count never drifts below zero.

    Example:
        >>> repo = PostRepository(db)
        >>> post = repo.create(user.id, "BTC thesis", "Range until CPI", ["https://..."])
        >>> repo.like(post.id, other_user.id)
        1
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def get(self, post_id: str) -> Optional[Post]:
        return self.db.query(Post).filter_by(id=post_id).first()

    def require(self, post_id: str) -> Post:
        post = self.get(post_id)
        if post is None:
            raise NotFoundError("Post not found")
        return post

    def create(self, user_id: str, title: str, body: str, media_urls: Sequence[str] = ()) -> Post:
        post = Post(user_id=user_id, title=title, body=body, likes_count=0)
        post.media = [PostMedia(media_url=url) for url in media_urls if url]
        self.db.add(post)
        self.db.commit()
        self.db.refresh(post)
        return post

    def recent(self, limit: int = FEED_LIMIT) -> List[Post]:
        return self.db.query(Post).order_by(desc(Post.created_at)).limit(limit).all()

    def by_author(self, user_id: str, limit: int = 20) -> List[Post]:
        return (
            self.db.query(Post)
            .filter_by(user_id=user_id)
            .order_by(desc(Post.created_at))
            .limit(limit)
            .all()
        )

    def comment_counts(self, post_ids: Sequence[str]) -> Dict[str, int]:
        if not post_ids:
            return {}
        rows = (
            self.db.query(Comment.post_id, func.count(Comment.id))
            .filter(Comment.post_id.in_(post_ids))
            .group_by(Comment.post_id)
            .all()
        )
        return dict(rows)

    def liked_ids(self, user_id: Optional[str], post_ids: Sequence[str]) -> set:
        if not user_id or not post_ids:
            return set()
        rows = (
            self.db.query(PostLike.post_id)
            .filter(PostLike.user_id == user_id, PostLike.post_id.in_(post_ids))
            .all()
        )
        return {row[0] for row in rows}

    def saved_ids(self, user_id: Optional[str], post_ids: Sequence[str]) -> set:
        if not user_id or not post_ids:
            return set()
        rows = (
            self.db.query(SavedPost.post_id)
            .filter(SavedPost.user_id == user_id, SavedPost.post_id.in_(post_ids))
            .all()
        )
        return {row[0] for row in rows}

    def feed_rows(self, posts: Sequence[Post], viewer_id: Optional[str]) -> List[dict]:
        """Serialize posts with author, counts and the viewer's like/save state."""
        post_ids = [p.id for p in posts]
        comments = self.comment_counts(post_ids)
        liked = self.liked_ids(viewer_id, post_ids)
        saved = self.saved_ids(viewer_id, post_ids)
        authors = {
            p.id: p
            for p in self.db.query(Profile).filter(Profile.id.in_({post.user_id for post in posts})).all()
        } if posts else {}

        rows = []
        for post in posts:
            author = authors.get(post.user_id)
            row = post.to_dict()
            row.update({
                "author": {
                    "id": post.user_id,
                    "display_name": (author.display_name if author else None) or "Unknown User",
                    "avatar_url": author.avatar_url if author else None,
                },
                "comments_count": comments.get(post.id, 0),
                "isLiked": post.id in liked,
                "isSaved": post.id in saved,
            })
            rows.append(row)
        return rows

    # ------------------------------------------------------------------
    # Likes
    # ------------------------------------------------------------------

    def _refresh_likes_count(self, post: Post) -> int:
        post.likes_count = self.db.query(PostLike).filter_by(post_id=post.id).count()
        self.db.commit()
        return post.likes_count

    def like(self, post_id: str, user_id: str) -> int:
        """Like a post.

        Returns:
            New like count

        Raises:
            NotFoundError: Post does not exist
            ConflictError: Already liked
        """
        post = self.require(post_id)
        if self.liked_ids(user_id, [post_id]):
            raise ConflictError("Already liked")

        self.db.add(PostLike(post_id=post_id, user_id=user_id))
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Already liked") from e
        return self._refresh_likes_count(post)

    def unlike(self, post_id: str, user_id: str) -> int:
        post = self.require(post_id)
        self.db.query(PostLike).filter_by(post_id=post_id, user_id=user_id).delete(
            synchronize_session=False
        )
        return self._refresh_likes_count(post)

    # ------------------------------------------------------------------
    # Saves
    # ------------------------------------------------------------------

    def save(self, post_id: str, user_id: str) -> SavedPost:
        self.require(post_id)
        if self.saved_ids(user_id, [post_id]):
            raise ConflictError("Already saved")

        saved = SavedPost(post_id=post_id, user_id=user_id)
        self.db.add(saved)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Already saved") from e
        return saved

    def unsave(self, post_id: str, user_id: str) -> int:
        deleted = (
            self.db.query(SavedPost)
            .filter_by(post_id=post_id, user_id=user_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def saved_posts(self, user_id: str) -> List[dict]:
        """Posts saved by user_id, most recently saved first, in feed shape."""
        saves = (
            self.db.query(SavedPost)
            .filter_by(user_id=user_id)
            .order_by(desc(SavedPost.created_at))
            .all()
        )
        posts = [s.post for s in saves if s.post is not None]
        rows = self.feed_rows(posts, user_id)
        for row, saved in zip(rows, [s for s in saves if s.post is not None]):
            row["saved_at"] = saved.created_at.isoformat() if saved.created_at else None
        return rows

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def comments_tree(self, post_id: str) -> List[dict]:
        """Comments oldest first, replies nested under their parent."""
        comments = (
            self.db.query(Comment)
            .filter_by(post_id=post_id)
            .order_by(Comment.created_at)
            .all()
        )
        authors = {
            p.id: p
            for p in self.db.query(Profile).filter(Profile.id.in_({c.user_id for c in comments})).all()
        } if comments else {}

        nodes = {}
        for comment in comments:
            node = comment.to_dict()
            author = authors.get(comment.user_id)
            node["author"] = {
                "id": comment.user_id,
                "display_name": (author.display_name if author else None) or "Unknown User",
                "avatar_url": author.avatar_url if author else None,
            }
            node["replies"] = []
            nodes[comment.id] = node

        roots = []
        for comment in comments:
            parent = nodes.get(comment.parent_comment_id)
            if parent is not None:
                parent["replies"].append(nodes[comment.id])
            else:
                roots.append(nodes[comment.id])
        return roots

    def add_comment(
        self,
        post_id: str,
        user_id: str,
        body: str,
        parent_comment_id: Optional[str] = None,
    ) -> Comment:
        self.require(post_id)
        if parent_comment_id:
            parent = self.db.query(Comment).filter_by(id=parent_comment_id, post_id=post_id).first()
            if parent is None:
                raise NotFoundError("Parent comment not found")

        comment = Comment(
            post_id=post_id,
            user_id=user_id,
            body=body,
            parent_comment_id=parent_comment_id,
        )
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        return comment

    def delete_comment(self, comment_id: str, user_id: str) -> None:
        """Delete a comment and its replies.

        Raises:
            NotFoundError: Comment does not exist
            PermissionDeniedError: Caller wrote neither the comment nor the post
        """
        comment = self.db.query(Comment).filter_by(id=comment_id).first()
        if comment is None:
            raise NotFoundError("Comment not found")

        post_author = comment.post.user_id if comment.post else None
        if user_id not in (comment.user_id, post_author):
            raise PermissionDeniedError("You don't have permission to delete this comment")

        self.db.delete(comment)
        self.db.commit()
        logger.info(f"Deleted comment {comment_id}", extra={'user_id': user_id})
