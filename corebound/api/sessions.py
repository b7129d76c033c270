"""Strategy sessions API: create, inspect and start/stop runs of a strategy."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..arena import ARENA_STARTING_EQUITY, uses_virtual_broker
from ..config import CoreboundConfig
from ..database.connection import get_db
from ..database.repositories import ExchangeConnectionRepository, ProfileRepository, SessionRepository, StrategyRepository
from ..exceptions import CredentialError, ExchangeError, NotFoundError
from ..providers.factory import venue_display_name
from ..strategy import session_cadence
from ..validation import ValidationError
from ..web.auth import CurrentUser, get_config, get_current_user
from ..web.csrf import require_valid_origin
from .deps import VerifierFactory, get_verifier_factory

router = APIRouter(prefix="/api/sessions", tags=["sessions"])
logger = logging.getLogger(__name__)

SESSION_MODES = ("virtual", "live", "arena")
CONTROL_STATUSES = ("running", "stopped")


class SessionCreate(BaseModel):
    strategy_id: Optional[str] = None
    mode: Any = "virtual"


class SessionControl(BaseModel):
    status: Any = None


def _positive(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _session_row(session) -> dict:
    """Session with its strategy summary, accounts and headline market."""
    row = session.to_dict()
    strategy = session.strategy
    row["strategies"] = {
        "id": strategy.id,
        "name": strategy.name,
        "model_provider": strategy.model_provider,
        "model_name": strategy.model_name,
        "filters": strategy.filters or {},
    } if strategy else {}

    virtual = session.virtual_account.to_dict() if session.virtual_account else None
    live = session.live_account.to_dict() if session.live_account else None
    if virtual is not None and uses_virtual_broker(session.mode):
        virtual["equity"] = float(virtual["cash_balance"] or 0)
    if live is not None and session.mode == "live":
        live["equity"] = float(live["equity"] or 0)

    row["virtual_accounts"] = virtual
    row["live_accounts"] = live
    row["sim_accounts"] = virtual
    row["market"] = session.markets[0] if session.markets else "N/A"
    return row


def _require_session(repo: SessionRepository, session_id: str, user_id: str):
    session = repo.get(session_id, user_id)
    if session is None:
        raise NotFoundError("Session not found")
    return session


async def _live_equity(connection, venue_name: str, config: CoreboundConfig, verifier_factory: VerifierFactory) -> float:
    try:
        verifier = verifier_factory(connection, config)
    except CredentialError as e:
        raise ExchangeError(
            f"Failed to connect to {venue_name}: {e.message}. Please check your exchange connection in Settings."
        ) from e

    try:
        return await verifier.account_equity(connection)
    except ExchangeError as e:
        raise ExchangeError(
            f"Failed to connect to {venue_name}: {e.message}. Please check your exchange connection in Settings."
        ) from e
    finally:
        await verifier.close()


@router.get("")
async def list_sessions(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The user's 100 most recent sessions, newest first."""
    sessions = SessionRepository(db).list_for_user(user.id)
    return {"sessions": [_session_row(s) for s in sessions]}


@router.post("", status_code=201)
async def create_session(
    body: SessionCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: CoreboundConfig = Depends(get_config),
    verifier_factory: VerifierFactory = Depends(get_verifier_factory),
):
    """Create a stopped session for one of the user's strategies.

    Virtual and arena sessions get a fresh $100k paper account. Live
    sessions reuse the venue's live account, starting from the equity the
    exchange reports now. Arena sessions also enter the leaderboard under
    the user's username.
    """
    if not body.strategy_id:
        raise ValidationError("strategy_id is required", field="strategy_id")
    mode = body.mode
    if mode not in SESSION_MODES:
        raise ValidationError("Invalid mode. Must be 'virtual', 'live', or 'arena'", field="mode")

    strategy = StrategyRepository(db).get(body.strategy_id, user.id)
    if strategy is None:
        raise NotFoundError("Strategy not found")

    filters = strategy.filters or {}
    markets = filters.get("markets") or []
    cadence_seconds = session_cadence(filters)
    if cadence_seconds != filters.get("cadenceSeconds"):
        logger.warning(f"Invalid cadence in strategy filters: {filters.get('cadenceSeconds')}, using default {cadence_seconds}s")

    if not markets:
        raise ValidationError("Strategy must have at least one market configured")

    risk = filters.get("risk") or {}
    if not _positive(risk.get("maxPositionUsd")):
        raise ValidationError(
            "Strategy must have valid Max Position (USD) configured in Risk Filters. "
            "Please edit your strategy and set this value."
        )
    if not _positive(risk.get("maxLeverage")):
        raise ValidationError(
            "Strategy must have valid Max Leverage configured in Risk Filters. "
            "Please edit your strategy and set this value."
        )

    display_name = None
    if mode == "arena":
        profile = ProfileRepository(db).get(user.id)
        display_name = (profile.username or "").strip() if profile else ""
        if len(display_name) < 2:
            raise ValidationError(
                "Arena requires a valid username. Please set your username in profile settings first."
            )

    repo = SessionRepository(db)
    venue = filters.get("venue") or "hyperliquid"
    account_id = None
    live_account_id = None

    if uses_virtual_broker(mode):
        prefix = "Arena" if mode == "arena" else "Demo Account"
        account = repo.create_virtual_account(
            user.id, f"{prefix} - {strategy.name}", ARENA_STARTING_EQUITY, commit=False
        )
        account_id = account.id
        starting_equity = float(ARENA_STARTING_EQUITY)
    else:
        venue_name = venue_display_name(venue)
        connection = ExchangeConnectionRepository(db).get_for_venue(user.id, venue)
        if connection is None:
            raise ValidationError(
                f"No {venue_name} exchange connection found. Please connect your exchange in Settings."
            )
        equity = await _live_equity(connection, venue_name, config, verifier_factory)
        account = repo.sync_live_account(user.id, venue, equity)
        live_account_id = account.id
        starting_equity = account.equity

    session = repo.create(
        user.id,
        strategy.id,
        mode,
        markets,
        cadence_seconds,
        starting_equity,
        venue,
        account_id=account_id,
        live_account_id=live_account_id,
        commit=mode != "arena",
    )
    if mode == "arena":
        # virtual account, session and entry commit together
        repo.create_arena_entry(session, display_name)

    return {"session": _session_row(session)}


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    session = _require_session(SessionRepository(db), session_id, user.id)
    return {"session": _session_row(session)}


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not SessionRepository(db).delete(session_id, user.id):
        raise NotFoundError("Session not found")
    return {"success": True}


@router.post("/{session_id}/stop")
async def stop_session(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    repo = SessionRepository(db)
    session = repo.set_status(_require_session(repo, session_id, user.id), "stopped")
    return {"session": _session_row(session)}


@router.post("/{session_id}/resume")
async def resume_session(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    repo = SessionRepository(db)
    session = _require_session(repo, session_id, user.id)
    if session.status == "running":
        raise ValidationError("Session is already running", field="status")
    session = repo.set_status(session, "running")
    return {"session": _session_row(session)}


@router.patch("/{session_id}/control", dependencies=[Depends(require_valid_origin)])
async def control_session(
    session_id: str,
    body: SessionControl,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if body.status not in CONTROL_STATUSES:
        raise ValidationError("Invalid status. Must be 'running' or 'stopped'", field="status")

    repo = SessionRepository(db)
    session = repo.set_status(_require_session(repo, session_id, user.id), body.status)
    return {"session": _session_row(session)}
