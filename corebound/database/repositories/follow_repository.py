"""Follow graph repository."""

from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import ConflictError
from ..models import Follow


class FollowRepository:
    """Repository for follower/following edges."""

    def __init__(self, db: Session):
        self.db = db

    def is_following(self, follower_id: str, following_id: str) -> bool:
        return (
            self.db.query(Follow.id)
            .filter_by(follower_id=follower_id, following_id=following_id)
            .first()
            is not None
        )

    def follow(self, follower_id: str, following_id: str) -> Follow:
        """Create a follow edge.

        Raises:
            ConflictError: If the edge already exists
        """
        if self.is_following(follower_id, following_id):
            raise ConflictError("Already following this user")

        edge = Follow(follower_id=follower_id, following_id=following_id)
        self.db.add(edge)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Already following this user") from e
        self.db.refresh(edge)
        return edge

    def unfollow(self, follower_id: str, following_id: str) -> int:
        deleted = (
            self.db.query(Follow)
            .filter_by(follower_id=follower_id, following_id=following_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def following_ids(self, user_id: str) -> List[str]:
        rows = self.db.query(Follow.following_id).filter_by(follower_id=user_id).all()
        return [row[0] for row in rows]

    def follower_ids(self, user_id: str) -> List[str]:
        rows = self.db.query(Follow.follower_id).filter_by(following_id=user_id).all()
        return [row[0] for row in rows]

    def count_followers(self, user_id: str) -> int:
        return self.db.query(Follow).filter_by(following_id=user_id).count()

    def count_following(self, user_id: str) -> int:
        return self.db.query(Follow).filter_by(follower_id=user_id).count()
