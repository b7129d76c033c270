"""Saved AI provider key repository."""

import logging
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import ConflictError, NotFoundError, PermissionDeniedError
from ..models import Strategy, UserApiKey

logger = logging.getLogger(__name__)


class ApiKeyRepository:
    """Repository for encrypted AI provider keys saved in settings."""

    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: str) -> List[UserApiKey]:
        return (
            self.db.query(UserApiKey)
            .filter_by(user_id=user_id)
            .order_by(desc(UserApiKey.created_at))
            .all()
        )

    def get_owned(self, key_id: str, user_id: str) -> Optional[UserApiKey]:
        return self.db.query(UserApiKey).filter_by(id=key_id, user_id=user_id).first()

    def create(
        self,
        user_id: str,
        provider: str,
        label: str,
        encrypted_key: str,
        key_preview: str,
    ) -> UserApiKey:
        """Store a key.

        Raises:
            ConflictError: The (provider, label) pair is taken for this user
        """
        message = f'You already have a key labeled "{label}" for {provider}'
        taken = (
            self.db.query(UserApiKey.id)
            .filter_by(user_id=user_id, provider=provider, label=label)
            .first()
        )
        if taken:
            raise ConflictError(message)

        key = UserApiKey(
            user_id=user_id,
            provider=provider,
            label=label,
            encrypted_key=encrypted_key,
            key_preview=key_preview,
        )
        self.db.add(key)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(message) from e
        self.db.refresh(key)
        return key

    def strategies_using(self, key_id: str) -> List[Strategy]:
        return self.db.query(Strategy).filter_by(saved_api_key_id=key_id).all()

    def delete(self, key_id: str, user_id: str) -> int:
        """Delete a key and detach it from strategies that reference it.

        Returns:
            Number of strategies that lost their saved key

        Raises:
            NotFoundError: Key does not exist
            PermissionDeniedError: Key belongs to someone else
        """
        key = self.db.query(UserApiKey).filter_by(id=key_id).first()
        if key is None:
            raise NotFoundError("Key not found")
        if key.user_id != user_id:
            raise PermissionDeniedError("You don't have permission to delete this key")

        strategies = self.strategies_using(key_id)
        if strategies:
            logger.warning(
                f"Deleting API key {key_id} used by {len(strategies)} strategies; "
                "they will fall back to the platform key",
                extra={'user_id': user_id},
            )
        for strategy in strategies:
            strategy.saved_api_key_id = None

        self.db.delete(key)
        self.db.commit()
        return len(strategies)
