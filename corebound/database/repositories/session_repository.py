"""Strategy session repository: sessions, their accounts and equity history."""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import desc
from sqlalchemy.orm import Session

from ...arena import ARENA_STARTING_EQUITY
from ...strategy.cadence import should_tick
from ..models import (
    ArenaEntry,
    EquityPoint,
    LiveAccount,
    StrategySession,
    VirtualAccount,
    ensure_utc,
    utcnow,
)

logger = logging.getLogger(__name__)

SESSION_LIST_LIMIT = 100


def _epoch_ms(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return int(ensure_utc(value).timestamp() * 1000)


class SessionRepository:
    """Repository for strategy sessions.

    Sessions start ``stopped``; the control endpoints flip them between
    ``running`` and ``stopped``. ``started_at`` is stamped on the first run
    only.
    """

    def __init__(self, db: Session):
        self.db = db

    def _save(self, row, commit: bool):
        """Add a row; without commit it is only flushed so the caller can commit a group."""
        self.db.add(row)
        if commit:
            self.db.commit()
            self.db.refresh(row)
        else:
            self.db.flush()
        return row

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def list_for_user(self, user_id: str, limit: int = SESSION_LIST_LIMIT) -> List[StrategySession]:
        return (
            self.db.query(StrategySession)
            .filter_by(user_id=user_id)
            .order_by(desc(StrategySession.created_at))
            .limit(limit)
            .all()
        )

    def get(self, session_id: str, user_id: str) -> Optional[StrategySession]:
        return self.db.query(StrategySession).filter_by(id=session_id, user_id=user_id).first()

    def create(
        self,
        user_id: str,
        strategy_id: str,
        mode: str,
        markets: Sequence[str],
        cadence_seconds: int,
        starting_equity: float,
        venue: str,
        account_id: Optional[str] = None,
        live_account_id: Optional[str] = None,
        commit: bool = True,
    ) -> StrategySession:
        session = StrategySession(
            user_id=user_id,
            strategy_id=strategy_id,
            mode=mode,
            status="stopped",
            markets=list(markets),
            cadence_seconds=cadence_seconds,
            starting_equity=starting_equity,
            venue=venue,
            account_id=account_id,
            live_account_id=live_account_id,
        )
        self._save(session, commit)
        logger.info(
            f"Created {mode} session {session.id} (cadence {cadence_seconds}s)",
            extra={'user_id': user_id, 'session_id': session.id},
        )
        return session

    def delete(self, session_id: str, user_id: str) -> bool:
        session = self.get(session_id, user_id)
        if session is None:
            return False
        self.db.delete(session)
        self.db.commit()
        return True

    def set_status(self, session: StrategySession, status: str, now: Optional[datetime] = None) -> StrategySession:
        """Set running/stopped, stamping started_at on the first run.

        Arena entries are left alone: a stopped arena session stays on the
        board as "ended" until its owner leaves.
        """
        session.status = status
        if status == "running" and session.started_at is None:
            session.started_at = now or utcnow()
        self.db.commit()
        self.db.refresh(session)
        return session

    def mark_ticked(self, session: StrategySession, now: Optional[datetime] = None) -> None:
        """Stamp a tick; called by the tick runner after each decision."""
        session.last_tick_at = now or utcnow()
        self.db.commit()

    def get_due_sessions(self, now: Optional[datetime] = None) -> List[StrategySession]:
        """Running sessions whose cadence has elapsed since their last tick."""
        now_ms = _epoch_ms(now or utcnow())
        running = self.db.query(StrategySession).filter_by(status="running").all()
        return [
            session
            for session in running
            if should_tick(now_ms, _epoch_ms(session.last_tick_at), session.cadence_seconds)
        ]

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_virtual_account(
        self,
        user_id: str,
        name: str,
        starting_equity: float = ARENA_STARTING_EQUITY,
        commit: bool = True,
    ) -> VirtualAccount:
        account = VirtualAccount(
            user_id=user_id,
            name=name,
            starting_equity=starting_equity,
            cash_balance=starting_equity,
            equity=starting_equity,
        )
        return self._save(account, commit)

    def get_live_account(self, user_id: str, venue: str) -> Optional[LiveAccount]:
        return self.db.query(LiveAccount).filter_by(user_id=user_id, venue=venue).first()

    def create_live_account(self, user_id: str, venue: str, equity: float) -> LiveAccount:
        account = LiveAccount(
            user_id=user_id,
            venue=venue,
            starting_equity=equity,
            cash_balance=equity,
            equity=equity,
        )
        self.db.add(account)
        self.db.commit()
        self.db.refresh(account)
        return account

    def sync_live_account(self, user_id: str, venue: str, equity: float) -> LiveAccount:
        """Reuse the user's live account for a venue, refreshing its equity."""
        account = self.get_live_account(user_id, venue)
        if account is None:
            return self.create_live_account(user_id, venue, equity)
        account.equity = equity
        self.db.commit()
        self.db.refresh(account)
        return account

    # ------------------------------------------------------------------
    # Equity history
    # ------------------------------------------------------------------

    def record_equity(self, session_id: str, equity: float, t: Optional[datetime] = None) -> EquityPoint:
        """Append an equity point; the tick runner records one per tick.

        The leaderboard, the arena chart and snapshot refreshes read these points.
        """
        point = EquityPoint(session_id=session_id, equity=equity, t=t or utcnow())
        self.db.add(point)
        self.db.commit()
        return point

    def latest_equity(self, session_id: str) -> Optional[float]:
        point = (
            self.db.query(EquityPoint)
            .filter_by(session_id=session_id)
            .order_by(desc(EquityPoint.t))
            .first()
        )
        return point.equity if point else None

    def equity_points(self, session_ids: Sequence[str]) -> List[EquityPoint]:
        if not session_ids:
            return []
        return (
            self.db.query(EquityPoint)
            .filter(EquityPoint.session_id.in_(session_ids))
            .order_by(EquityPoint.t)
            .all()
        )

    # ------------------------------------------------------------------
    # Arena
    # ------------------------------------------------------------------

    def create_arena_entry(self, session: StrategySession, display_name: str) -> ArenaEntry:
        """Enter a session in the arena, committing it with any rows flushed before it."""
        entry = ArenaEntry(
            user_id=session.user_id,
            session_id=session.id,
            mode="arena",
            display_name=display_name,
            active=True,
            arena_status="active",
        )
        return self._save(entry, commit=True)
