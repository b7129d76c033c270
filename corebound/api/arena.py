"""Arena API: leaderboard, equity chart and participation."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..arena import build_leaderboard
from ..database.connection import get_db
from ..database.models import utcnow
from ..database.repositories import ArenaRepository, SessionRepository
from ..exceptions import GoneError, NotFoundError
from ..validation import ValidationError
from ..web.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/api/arena", tags=["arena"])

VIRTUAL_ENTRY_MODES = ("arena", "virtual")


class LeaveRequest(BaseModel):
    sessionId: Optional[str] = None


@router.get("/virtual")
async def virtual_leaderboard(
    show_ended: bool = Query(False, alias="showEnded"),
    db: Session = Depends(get_db),
):
    """Ranked leaderboard; ``showEnded`` adds entries that ended or left."""
    standings = ArenaRepository(db).standings(show_ended=show_ended)
    return {"leaderboard": build_leaderboard(standings, utcnow())}


@router.get("/chart")
async def arena_chart(db: Session = Depends(get_db)):
    return ArenaRepository(db).chart()


@router.get("/status")
async def arena_status(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    entries = ArenaRepository(db).active_entries_for_user(user.id)
    has_joined_virtual = any(e.mode in VIRTUAL_ENTRY_MODES for e in entries)
    has_joined_live = any(e.mode == "live" for e in entries)
    return {
        "hasJoinedVirtual": has_joined_virtual,
        "hasJoinedLive": has_joined_live,
        "hasJoined": has_joined_virtual or has_joined_live,
        "entries": [
            {"id": e.id, "mode": e.mode, "session_id": e.session_id} for e in entries
        ],
    }


@router.post("/join")
async def join_arena(user: CurrentUser = Depends(get_current_user)):
    raise GoneError("Arena join is deprecated. Create an arena session instead.")


@router.post("/leave")
async def leave_arena(
    body: LeaveRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Take a session off the leaderboard; the session itself keeps running."""
    if not body.sessionId:
        raise ValidationError("Missing sessionId", field="sessionId")
    if SessionRepository(db).get(body.sessionId, user.id) is None:
        raise NotFoundError("Session not found")

    left = ArenaRepository(db).leave(body.sessionId, user.id)
    if not left:
        return {"success": True, "message": "No arena entry found for this session"}
    return {
        "success": True,
        "left": left,
        "message": "Successfully left arena. Your session will no longer appear on the leaderboard.",
    }


@router.post("/refresh-snapshots")
async def refresh_snapshots(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Recompute equity and drawdown snapshots for every active entry."""
    result = ArenaRepository(db).refresh_snapshots()
    if not result["total"]:
        return {"message": "No active arena entries to refresh", **result}
    return {"message": f"Refreshed {result['refreshed']} snapshots", **result}
