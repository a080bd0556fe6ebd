"""
Predictor entry submission with lock guards, and the per-round read of a
user's entries alongside their settled points.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from playoff_league import config
from playoff_league.models import Game, PredictorEntry, PredictorLockMode, PredictorPointRow
from playoff_league.persistence.repositories import (
    GameRepository,
    PredictorEntryRepository,
    PredictorPointRepository,
)
from playoff_league.services.round_service import (
    EntryLockedError,
    RoundService,
    is_prediction_locked,
)


class GameNotFoundError(ValueError):
    """No game with the given id."""


@dataclass
class PredictionResult:
    """One game of the round with the user's entry and settled points (either may be missing)."""
    game: Game
    entry: PredictorEntry | None
    points: PredictorPointRow | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "game": self.game.to_dict(),
            "away_score_pred": self.entry.away_score_pred if self.entry else None,
            "home_score_pred": self.entry.home_score_pred if self.entry else None,
            "base_points": float(self.points.base_points) if self.points else None,
            "weighted_points": float(self.points.weighted_points) if self.points else None,
        }


class PredictionService:
    def __init__(self, lock_mode: PredictorLockMode | None = None) -> None:
        self._lock_mode = lock_mode or config.PREDICTOR_LOCK_MODE
        self._rounds = RoundService()
        self._game_repo = GameRepository()
        self._entry_repo = PredictorEntryRepository()
        self._points_repo = PredictorPointRepository()

    def submit_prediction(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        game_id: str,
        away_score: int,
        home_score: int,
        now: datetime | None = None,
    ) -> PredictorEntry:
        """Validate 0-99 scores and the game lock, then upsert by (game_id, user_id)."""
        entry = PredictorEntry.from_row({
            "game_id": game_id,
            "user_id": user_id,
            "away_score_pred": away_score,
            "home_score_pred": home_score,
        })
        game = self._game_repo.get(conn, game_id)
        if game is None:
            raise GameNotFoundError(f"Game not found: {game_id}")
        round_ = self._rounds.get_round(conn, game.round_id)
        now = now or datetime.now(timezone.utc)
        if is_prediction_locked(round_, game, now, self._lock_mode):
            raise EntryLockedError(f"{game.away_team} @ {game.home_team} is locked; predictions cannot change")
        return self._entry_repo.upsert(
            conn, entry.game_id, entry.user_id, entry.away_score_pred, entry.home_score_pred
        )

    def list_predictions(self, conn: sqlite3.Connection, user_id: str, round_id: str) -> list[PredictionResult]:
        """Every game in the round, in kickoff order, with the user's entry and settled points."""
        self._rounds.get_round(conn, round_id)
        entries = self._entry_repo.list_for_user_round(conn, user_id, round_id)
        points = self._points_repo.list_for_user_round(conn, user_id, round_id)
        return [
            PredictionResult(game=game, entry=entries.get(game.id), points=points.get(game.id))
            for game in self._game_repo.list_by_round(conn, round_id)
        ]
