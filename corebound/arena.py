"""Arena competition rules and leaderboard assembly.

The arena is a virtual-only competition: every participant starts from
$100,000 on the virtual broker, and an entry stays on the leaderboard while
it is ``active``. Stopping a session does not end its entry; only leaving
the arena (or an operator ending it) does.

Everything here is pure. Repositories gather the rows, these helpers shape
them for the API.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

ARENA_STARTING_EQUITY = 100000
ARENA_STATUSES = ("active", "left", "ended")
LEADERBOARD_SIZE = 100

VIRTUAL_BROKER_MODES = ("virtual", "arena")


def compute_return_series(
    snapshots: Sequence[Mapping[str, Any]],
    baseline: Optional[float] = None,
) -> List[Dict[str, Any]]:
    """Compute return % for equity points sorted ascending by time.

    Args:
        snapshots: Points with ``time`` and ``equity``
        baseline: Reference equity; the first point's equity when missing or <= 0

    Returns:
        Points with ``time``, ``equity`` and ``returnPct = (equity / base - 1) * 100``

    Example:
        >>> compute_return_series([{"time": 1, "equity": 110000}], baseline=100000)
        [{'time': 1, 'equity': 110000, 'returnPct': 10.000000000000009}]
    """
    if not snapshots:
        return []

    base = baseline if baseline and baseline > 0 else snapshots[0]["equity"]
    if base <= 0:
        return [{"time": s["time"], "equity": s["equity"], "returnPct": 0} for s in snapshots]

    return [
        {"time": s["time"], "equity": s["equity"], "returnPct": (s["equity"] / base - 1) * 100}
        for s in snapshots
    ]


def max_drawdown_pct(equities: Sequence[float], starting_equity: float) -> Optional[float]:
    """Largest peak-to-trough fall of an equity curve, in percent.

    Drawdown = (Peak Equity - Equity) / Peak Equity * 100, with the peak
    starting at the session's starting equity.

    Args:
        equities: Equity values sorted ascending by time
        starting_equity: Session starting equity

    Returns:
        Maximum drawdown percentage (0-100), None without equity history

    Example:
        >>> max_drawdown_pct([110000, 99000, 120000], 100000)
        10.0
    """
    if not equities:
        return None

    peak = starting_equity
    max_dd = 0.0
    for equity in equities:
        if equity > peak:
            peak = equity
        dd = ((peak - equity) / peak) * 100 if peak > 0 else 0.0
        if dd > max_dd:
            max_dd = dd
    return max_dd


def is_leaderboard_eligible(entry: Mapping[str, Any]) -> bool:
    """An entry ranks only while active with arena_status "active"."""
    return entry.get("active") is True and entry.get("arena_status") == "active"


def uses_virtual_broker(mode: Optional[str]) -> bool:
    """Arena sessions execute on the virtual broker, never a live exchange."""
    return mode in VIRTUAL_BROKER_MODES


def days_since(started_at: Optional[datetime], now: datetime) -> int:
    """Whole days between the local midnights of started_at and now, floored at 0."""
    if started_at is None:
        return 0
    start_day = started_at.astimezone().date() if started_at.tzinfo else started_at.date()
    today = now.astimezone().date() if now.tzinfo else now.date()
    return max(0, (today - start_day).days)


@dataclass
class ArenaStanding:
    """One arena entry with everything needed to rank it."""

    entry_id: str
    user_id: str
    display_name: Optional[str]
    arena_status: Optional[str]
    active: bool
    opted_in_at: Optional[datetime]
    session_status: Optional[str] = None
    session_started_at: Optional[datetime] = None
    latest_equity: Optional[float] = None
    snapshot: Optional[Mapping[str, Any]] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None

    def current_equity(self) -> float:
        """Latest equity point or account equity, then snapshot, then the starting balance."""
        if self.latest_equity is not None:
            return float(self.latest_equity)
        if self.snapshot and self.snapshot.get("equity"):
            return float(self.snapshot["equity"])
        return float(ARENA_STARTING_EQUITY)

    def shown_status(self) -> str:
        if self.arena_status == "active" and self.session_status == "stopped":
            return "ended"
        return self.arena_status or "active"


def _optional_float(value: Any) -> Optional[float]:
    return float(value) if value else None


def build_leaderboard(standings: Sequence[ArenaStanding], now: datetime) -> List[Dict[str, Any]]:
    """Rank standings by equity, keeping the top 100.

    Args:
        standings: Entries already filtered by the caller
        now: Reference time for daysSinceStarted

    Returns:
        Leaderboard rows ranked from 1
    """
    rows = []
    for standing in standings:
        equity = standing.current_equity()
        pnl = equity - ARENA_STARTING_EQUITY
        snapshot = standing.snapshot or {}
        started_at = standing.session_started_at or standing.opted_in_at
        rows.append({
            "entryId": standing.entry_id,
            "userId": standing.user_id,
            "displayName": standing.display_name or standing.username or "Anonymous",
            "avatarUrl": standing.avatar_url or None,
            "equity": equity,
            "startingEquity": ARENA_STARTING_EQUITY,
            "pnl": pnl,
            "pnlPct": pnl / ARENA_STARTING_EQUITY * 100,
            "tradesCount": snapshot.get("trades_count") or 0,
            "winRate": _optional_float(snapshot.get("win_rate")),
            "maxDrawdownPct": _optional_float(snapshot.get("max_drawdown_pct")),
            "optedInAt": standing.opted_in_at.isoformat() if standing.opted_in_at else None,
            "daysSinceStarted": days_since(started_at, now),
            "arenaStatus": standing.shown_status(),
            "sessionStatus": standing.session_status,
            "active": standing.active,
        })

    rows.sort(key=lambda row: row["equity"], reverse=True)
    ranked = rows[:LEADERBOARD_SIZE]
    for index, row in enumerate(ranked):
        row["rank"] = index + 1
    return ranked
