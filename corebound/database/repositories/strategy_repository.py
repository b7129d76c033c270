"""Strategy repository."""

from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..models import Strategy


class StrategyRepository:
    """Repository for AI strategies, always scoped to their owner.

    Example:
        >>> repo = StrategyRepository(db)
        >>> strategy = repo.create(user.id, name="Scalper", model_provider="openai",
        ...                        model_name="gpt-4o-mini", prompt="...", filters={})
        >>> repo.update(strategy.id, user.id, {"name": "Scalper v2"})
    """

    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: str) -> List[Strategy]:
        return (
            self.db.query(Strategy)
            .filter_by(user_id=user_id)
            .order_by(desc(Strategy.created_at))
            .all()
        )

    def get(self, strategy_id: str, user_id: str) -> Optional[Strategy]:
        return self.db.query(Strategy).filter_by(id=strategy_id, user_id=user_id).first()

    def create(self, user_id: str, **fields) -> Strategy:
        strategy = Strategy(user_id=user_id, **fields)
        self.db.add(strategy)
        self.db.commit()
        self.db.refresh(strategy)
        return strategy

    def update(self, strategy_id: str, user_id: str, updates: dict) -> Optional[Strategy]:
        strategy = self.get(strategy_id, user_id)
        if strategy:
            for key, value in updates.items():
                setattr(strategy, key, value)
            self.db.commit()
            self.db.refresh(strategy)
        return strategy

    def delete(self, strategy_id: str, user_id: str) -> bool:
        """Delete a strategy; its sessions go with it."""
        strategy = self.get(strategy_id, user_id)
        if strategy is None:
            return False
        self.db.delete(strategy)
        self.db.commit()
        return True
