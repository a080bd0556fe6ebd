"""
REST API for the playoff league backend.
Thin wrappers around the services: admin settlement and round controls,
roster and prediction submission, lineup preview, prediction history,
leaderboards.
"""
from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from playoff_league import config
from playoff_league.auth import decode_token
from playoff_league.models import MAX_SCORE, InvalidRowError, User
from playoff_league.persistence import UserRepository, get_connection, init_db
from playoff_league.persistence.db import get_db_path
from playoff_league.services import (
    EntryLockedError,
    GameNotFoundError,
    LeaderboardService,
    PredictionService,
    RosterService,
    RoundAdvanceError,
    RoundLockedError,
    RoundNotFoundError,
    RoundService,
    SettlementError,
    SettlementService,
)


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config.configure_logging()
    init_db(db_path=get_db_path())
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Playoff League API",
    description="Settlement and scoring for the playoff fantasy and predictor games",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

security = HTTPBearer(auto_error=False)


# ---------- Request models ----------


class LockRequest(BaseModel):
    locked: bool


class RosterRequest(BaseModel):
    slots: dict[str, str | None] = Field(
        ..., description="Slot name (QB, RB1, RB2, WR1, WR2, TE, FLEX, K, DEF) -> player_id or null"
    )


class PredictionRequest(BaseModel):
    away_score: int = Field(..., ge=0, le=MAX_SCORE)
    home_score: int = Field(..., ge=0, le=MAX_SCORE)


# ---------- Auth dependencies ----------


def _get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> User:
    """User from the bearer JWT; 401 if missing, invalid or unknown."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Login required")
    user_id = decode_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    with db_conn() as conn:
        user = UserRepository().get(conn, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def _require_admin(user: User = Depends(_get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin only")
    return user


def _require_self_or_admin(user: User, user_id: str) -> None:
    if user.id != user_id and not user.is_admin:
        raise HTTPException(status_code=403, detail="Cannot access another user's entries")


# ---------- Admin: settlement and rounds ----------


@app.post("/rounds/{round_id}/recalculate")
def recalculate_round(round_id: str, admin: User = Depends(_require_admin)) -> dict[str, Any]:
    """Recompute every derived score for the round. All-or-nothing; safe to repeat."""
    with db_conn() as conn:
        try:
            summary = SettlementService().recalculate(conn, round_id)
        except RoundNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except SettlementError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return summary.to_dict()


@app.post("/rounds/advance")
def advance_round(admin: User = Depends(_require_admin)) -> dict[str, Any]:
    """Lock the current round and make the next one current."""
    with db_conn() as conn:
        try:
            round_ = RoundService().advance_current_round(conn)
        except RoundAdvanceError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return round_.to_dict()


@app.post("/rounds/{round_id}/lock")
def set_round_lock(round_id: str, req: LockRequest, admin: User = Depends(_require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            round_ = RoundService().set_round_lock(conn, round_id, req.locked)
        except RoundNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return round_.to_dict()


@app.post("/rounds/{round_id}/predictor-lock")
def set_predictor_lock(round_id: str, req: LockRequest, admin: User = Depends(_require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            round_ = RoundService().set_predictor_lock(conn, round_id, req.locked)
        except RoundNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return round_.to_dict()


# ---------- Submissions ----------


@app.put("/rounds/{round_id}/rosters/{user_id}")
def save_roster(
    round_id: str,
    user_id: str,
    req: RosterRequest,
    user: User = Depends(_get_current_user),
) -> dict[str, Any]:
    """Replace the user's nine-slot lineup for the round (refused once the round is locked)."""
    _require_self_or_admin(user, user_id)
    with db_conn() as conn:
        try:
            lineup = RosterService().save_roster(conn, user_id, round_id, req.slots)
        except RoundNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except RoundLockedError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except InvalidRowError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return {
            "user_id": user_id,
            "round_id": round_id,
            "slots": {slot.value: player_id for slot, player_id in lineup.items()},
        }


@app.put("/games/{game_id}/predictions/{user_id}")
def submit_prediction(
    game_id: str,
    user_id: str,
    req: PredictionRequest,
    user: User = Depends(_get_current_user),
) -> dict[str, Any]:
    _require_self_or_admin(user, user_id)
    with db_conn() as conn:
        try:
            entry = PredictionService().submit_prediction(
                conn, user_id, game_id, req.away_score, req.home_score
            )
        except (GameNotFoundError, RoundNotFoundError) as e:
            raise HTTPException(status_code=404, detail=str(e))
        except EntryLockedError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except InvalidRowError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return entry.to_dict()


# ---------- Reads ----------


@app.get("/rounds/{round_id}/rosters/{user_id}")
def get_roster(round_id: str, user_id: str, user: User = Depends(_get_current_user)) -> dict[str, Any]:
    """The user's lineup for the round; a first visit seeds it from the previous round."""
    _require_self_or_admin(user, user_id)
    with db_conn() as conn:
        svc = RosterService()
        try:
            roster = svc.get_or_create_roster(conn, user_id, round_id)
        except RoundNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        lineup = svc.get_lineup(conn, roster.id)
        return {
            "user_id": user_id,
            "round_id": round_id,
            "slots": {slot.value: player_id for slot, player_id in lineup.items()},
        }


@app.get("/rounds/{round_id}/rosters/{user_id}/preview")
def preview_lineup(round_id: str, user_id: str, user: User = Depends(_get_current_user)) -> dict[str, Any]:
    """Per-slot player, base points and current multiplier. Other users' lineups stay hidden until lock."""
    with db_conn() as conn:
        try:
            round_ = RoundService().get_round(conn, round_id)
            if not round_.is_locked:
                _require_self_or_admin(user, user_id)
            slots = RosterService().preview_lineup(conn, user_id, round_id)
        except RoundNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"user_id": user_id, "round_id": round_id, "slots": [s.to_dict() for s in slots]}


@app.get("/rounds/{round_id}/predictions/{user_id}")
def list_predictions(round_id: str, user_id: str, user: User = Depends(_get_current_user)) -> dict[str, Any]:
    """The user's entries and settled points per game. Other users' entries stay hidden until predictor lock."""
    with db_conn() as conn:
        try:
            round_ = RoundService().get_round(conn, round_id)
            if not round_.predictor_locked:
                _require_self_or_admin(user, user_id)
            results = PredictionService().list_predictions(conn, user_id, round_id)
        except RoundNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"user_id": user_id, "round_id": round_id, "games": [r.to_dict() for r in results]}


@app.get("/leaderboard/fantasy")
def fantasy_leaderboard(round_id: str | None = None) -> dict[str, Any]:
    with db_conn() as conn:
        svc = LeaderboardService()
        try:
            rows = svc.fantasy_round_totals(conn, round_id) if round_id else svc.fantasy_totals(conn)
        except RoundNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"round_id": round_id, "rows": [r.to_dict() for r in rows]}


@app.get("/leaderboard/predictor")
def predictor_leaderboard(round_id: str | None = None) -> dict[str, Any]:
    with db_conn() as conn:
        svc = LeaderboardService()
        try:
            rows = svc.predictor_round_totals(conn, round_id) if round_id else svc.predictor_totals(conn)
        except RoundNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"round_id": round_id, "rows": [r.to_dict() for r in rows]}


@app.get("/leaderboard/predictor/net")
def predictor_net_leaderboard(round_id: str | None = None) -> dict[str, Any]:
    """Net dollars per user (100 points = $1, relative to the group average over all users)."""
    with db_conn() as conn:
        try:
            rows = LeaderboardService().predictor_net_dollars(conn, round_id=round_id)
        except RoundNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"round_id": round_id, "rows": [r.to_dict() for r in rows]}


# ---------- Run with: uvicorn playoff_league.api:app --reload ----------
