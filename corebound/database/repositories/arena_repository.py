"""Arena repository: entries, standings and chart series."""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session, joinedload

from ...arena import (
    ARENA_STARTING_EQUITY,
    ArenaStanding,
    compute_return_series,
    is_leaderboard_eligible,
    max_drawdown_pct,
)
from ..models import ArenaEntry, ArenaSnapshot, EquityPoint, Profile, StrategySession, ensure_utc, utcnow

logger = logging.getLogger(__name__)

SHOW_ENDED_STATUSES = ("active", "ended", "left")


class ArenaRepository:
    """Repository for arena entries and the data behind the leaderboard."""

    def __init__(self, db: Session):
        self.db = db

    def entries_for_session(self, session_id: str, user_id: str) -> List[ArenaEntry]:
        return self.db.query(ArenaEntry).filter_by(session_id=session_id, user_id=user_id).all()

    def active_entries_for_user(self, user_id: str) -> List[ArenaEntry]:
        return self.db.query(ArenaEntry).filter_by(user_id=user_id, active=True).all()

    def leave(self, session_id: str, user_id: str, now: Optional[datetime] = None) -> int:
        """Mark every entry of the session as left.

        Returns:
            Number of entries updated
        """
        entries = self.entries_for_session(session_id, user_id)
        left_at = now or utcnow()
        for entry in entries:
            entry.active = False
            entry.arena_status = "left"
            entry.left_at = left_at
        self.db.commit()
        return len(entries)

    def _arena_entries(self, show_ended: bool) -> List[ArenaEntry]:
        query = (
            self.db.query(ArenaEntry)
            .join(StrategySession, ArenaEntry.session_id == StrategySession.id)
            .options(joinedload(ArenaEntry.session).joinedload(StrategySession.virtual_account))
            .filter(ArenaEntry.mode == "arena")
        )
        if show_ended:
            query = query.filter(ArenaEntry.arena_status.in_(SHOW_ENDED_STATUSES))
        else:
            query = query.filter(ArenaEntry.active.is_(True), ArenaEntry.arena_status == "active")
        return query.all()

    def _latest_snapshots(self, entry_ids: List[str]) -> Dict[str, ArenaSnapshot]:
        if not entry_ids:
            return {}
        snapshots = (
            self.db.query(ArenaSnapshot)
            .filter(ArenaSnapshot.arena_entry_id.in_(entry_ids))
            .order_by(desc(ArenaSnapshot.captured_at))
            .all()
        )
        latest: Dict[str, ArenaSnapshot] = {}
        for snapshot in snapshots:
            latest.setdefault(snapshot.arena_entry_id, snapshot)
        return latest

    def _latest_equity(self, session_ids: List[str]) -> Dict[str, float]:
        if not session_ids:
            return {}
        points = (
            self.db.query(EquityPoint)
            .filter(EquityPoint.session_id.in_(session_ids))
            .order_by(desc(EquityPoint.t))
            .all()
        )
        latest: Dict[str, float] = {}
        for point in points:
            latest.setdefault(point.session_id, point.equity)
        return latest

    def standings(self, show_ended: bool = False) -> List[ArenaStanding]:
        """Collect leaderboard inputs for every listed arena entry.

        Equity comes from the newest equity point, then the virtual account,
        then the newest snapshot (resolved in ArenaStanding.current_equity).
        """
        entries = self._arena_entries(show_ended)
        entry_ids = [e.id for e in entries]
        snapshots = self._latest_snapshots(entry_ids)
        latest_equity = self._latest_equity([e.session_id for e in entries])
        profiles = {
            p.id: p
            for p in self.db.query(Profile).filter(Profile.id.in_({e.user_id for e in entries})).all()
        } if entries else {}

        standings = []
        for entry in entries:
            session = entry.session
            equity = latest_equity.get(entry.session_id)
            if equity is None and session is not None and session.virtual_account is not None:
                equity = session.virtual_account.equity
            snapshot = snapshots.get(entry.id)
            profile = profiles.get(entry.user_id)
            standings.append(ArenaStanding(
                entry_id=entry.id,
                user_id=entry.user_id,
                display_name=entry.display_name,
                arena_status=entry.arena_status,
                active=bool(entry.active),
                opted_in_at=ensure_utc(entry.opted_in_at),
                session_status=session.status if session else None,
                session_started_at=ensure_utc(session.started_at) if session else None,
                latest_equity=equity,
                snapshot=snapshot.to_dict() if snapshot else None,
                username=profile.username if profile else None,
                avatar_url=profile.avatar_url if profile else None,
            ))
        return standings

    def chart(self) -> dict:
        """Return-series chart data for eligible entries.

        Times are epoch milliseconds.
        """
        entries = [
            e for e in self._arena_entries(show_ended=False)
            if is_leaderboard_eligible({"active": e.active, "arena_status": e.arena_status})
        ]
        by_session: Dict[str, List[dict]] = {}
        session_ids = [e.session_id for e in entries]
        if session_ids:
            points = (
                self.db.query(EquityPoint)
                .filter(EquityPoint.session_id.in_(session_ids))
                .order_by(EquityPoint.t)
                .all()
            )
            for point in points:
                by_session.setdefault(point.session_id, []).append({
                    "time": int(ensure_utc(point.t).timestamp() * 1000),
                    "equity": point.equity,
                })

        participants = []
        times = []
        for entry in entries:
            series = compute_return_series(by_session.get(entry.session_id, []), ARENA_STARTING_EQUITY)
            times.extend(p["time"] for p in series)
            participants.append({
                "entryId": entry.id,
                "displayName": entry.display_name,
                "data": series,
            })

        return {
            "participants": participants,
            "minTime": min(times) if times else 0,
            "maxTime": max(times) if times else 0,
        }

    def refresh_snapshots(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Capture a new snapshot for every active arena entry.

        Equity is the newest equity point, then the virtual account, then
        the session's starting equity. Max drawdown is measured over the
        session's equity points. Trade count and win rate are recorded by
        the tick runner, so they carry over from the previous snapshot.

        Args:
            now: Capture time (defaults to the current time)

        Returns:
            Dict with ``total`` active entries and ``refreshed`` snapshots written
        """
        entries = (
            self.db.query(ArenaEntry)
            .options(joinedload(ArenaEntry.session).joinedload(StrategySession.virtual_account))
            .filter(ArenaEntry.active.is_(True))
            .all()
        )
        if not entries:
            return {"total": 0, "refreshed": 0}

        previous = self._latest_snapshots([e.id for e in entries])
        curves: Dict[str, List[float]] = {}
        points = (
            self.db.query(EquityPoint)
            .filter(EquityPoint.session_id.in_({e.session_id for e in entries}))
            .order_by(EquityPoint.t)
            .all()
        )
        for point in points:
            curves.setdefault(point.session_id, []).append(point.equity)

        captured_at = now or utcnow()
        refreshed = 0
        for entry in entries:
            session = entry.session
            if session is None:
                logger.warning(f"Arena entry {entry.id} has no session, skipping snapshot")
                continue

            starting_equity = session.starting_equity or ARENA_STARTING_EQUITY
            curve = curves.get(entry.session_id, [])
            if curve:
                equity = curve[-1]
            elif session.virtual_account is not None:
                equity = session.virtual_account.equity
            else:
                equity = starting_equity

            last = previous.get(entry.id)
            self.db.add(ArenaSnapshot(
                arena_entry_id=entry.id,
                equity=equity,
                trades_count=last.trades_count if last else 0,
                win_rate=last.win_rate if last else None,
                max_drawdown_pct=max_drawdown_pct(curve, starting_equity),
                captured_at=captured_at,
            ))
            refreshed += 1

        self.db.commit()
        logger.info(f"Refreshed {refreshed} arena snapshots", extra={'total': len(entries)})
        return {"total": len(entries), "refreshed": refreshed}
