"""
Settlement: one full recomputation pass for a round.
Reads persisted inputs, computes fantasy slot scores and predictor points,
and overwrites the derived tables inside a single transaction.
Running it twice on unchanged inputs writes identical rows.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from playoff_league import config
from playoff_league.fantasy_scoring import score_lineup
from playoff_league.models import InvalidRowError, Round
from playoff_league.persistence.db import transaction
from playoff_league.persistence.repositories import (
    GameRepository,
    PlayerRepository,
    PredictorEntryRepository,
    PredictorPointRepository,
    RosterRepository,
    RosterSpotScoreRepository,
    RoundRepository,
    StatLineRepository,
)
from playoff_league.predictor_scoring import build_point_rows, score_game, weight_for_round
from playoff_league.services.round_service import RoundNotFoundError

_log = logging.getLogger("playoff_league.settlement")


class SettlementError(ValueError):
    """Persisted data violates an invariant; the whole pass was rolled back."""


@dataclass
class SettlementSummary:
    round_id: str
    round_number: int
    games_settled: int = 0
    games_cleared: int = 0
    predictor_rows: int = 0
    rosters_scored: int = 0
    roster_rows: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_id": self.round_id,
            "round_number": self.round_number,
            "games_settled": self.games_settled,
            "games_cleared": self.games_cleared,
            "predictor_rows": self.predictor_rows,
            "rosters_scored": self.rosters_scored,
            "roster_rows": self.roster_rows,
        }


class SettlementService:
    """
    recalculate(round_id): predictor points for every finalized game in the
    round, and roster spot scores for every roster in the round.
    Games that are not settleable have their stored points cleared.
    """

    def __init__(self, round_weights: Mapping[int, Decimal] | None = None) -> None:
        self._round_weights = dict(round_weights) if round_weights is not None else config.ROUND_WEIGHTS
        self._round_repo = RoundRepository()
        self._game_repo = GameRepository()
        self._entry_repo = PredictorEntryRepository()
        self._points_repo = PredictorPointRepository()
        self._roster_repo = RosterRepository()
        self._player_repo = PlayerRepository()
        self._stat_repo = StatLineRepository()
        self._score_repo = RosterSpotScoreRepository()

    def recalculate(self, conn: sqlite3.Connection, round_id: str) -> SettlementSummary:
        """Full overwrite of derived rows for the round; all-or-nothing."""
        try:
            with transaction(conn):
                round_ = self._round_repo.get(conn, round_id)
                if round_ is None:
                    raise RoundNotFoundError(f"Round not found: {round_id}")
                summary = SettlementSummary(round_id=round_.id, round_number=round_.round_number)
                self._settle_predictor(conn, round_, summary)
                self._settle_fantasy(conn, round_, summary)
        except InvalidRowError as exc:
            _log.error("Recalculation of round %s aborted: %s", round_id, exc)
            raise SettlementError(f"Recalculation of round {round_id} aborted: {exc}") from exc
        except SettlementError as exc:
            _log.error("Recalculation of round %s aborted: %s", round_id, exc)
            raise
        _log.info(
            "Round %s settled: %d games settled, %d cleared, %d predictor rows, %d rosters (%d slot rows)",
            summary.round_number,
            summary.games_settled,
            summary.games_cleared,
            summary.predictor_rows,
            summary.rosters_scored,
            summary.roster_rows,
        )
        return summary

    # ---------- Predictor ----------

    def _settle_predictor(self, conn: sqlite3.Connection, round_: Round, summary: SettlementSummary) -> None:
        weight: Decimal | None = None
        for game in self._game_repo.list_by_round(conn, round_.id):
            if not game.is_settleable:
                cleared = self._points_repo.delete_for_game(conn, game.id)
                summary.games_cleared += 1
                if cleared:
                    _log.warning("Game %s (%s @ %s) is not final; cleared %d stale rows",
                                 game.id, game.away_team, game.home_team, cleared)
                continue
            entries = self._entry_repo.list_by_game(conn, game.id)
            if not entries:
                self._points_repo.delete_for_game(conn, game.id)
                _log.debug("Game %s has no entries; nothing to settle", game.id)
                continue
            if weight is None:
                weight = self._weight_for(round_)
            scores = score_game(entries, game.away_score_final, game.home_score_final)
            rows = build_point_rows(game.id, scores, weight)
            summary.predictor_rows += self._points_repo.replace_for_game(conn, game.id, rows)
            summary.games_settled += 1
            _log.debug(
                "Game %s settled %d-%d: %d entries, weight %s",
                game.id, game.away_score_final, game.home_score_final, len(entries), weight,
            )

    def _weight_for(self, round_: Round) -> Decimal:
        try:
            return weight_for_round(self._round_weights, round_.round_number)
        except LookupError as exc:
            raise SettlementError(str(exc)) from exc

    # ---------- Fantasy ----------

    def _settle_fantasy(self, conn: sqlite3.Connection, round_: Round, summary: SettlementSummary) -> None:
        rosters = self._roster_repo.list_by_round(conn, round_.id)
        stat_points = self._stat_repo.points_for_round(conn, round_.id)
        lineups = {r.id: self._roster_repo.get_lineup(conn, r.id) for r in rosters}
        rostered = {pid for lineup in lineups.values() for pid in lineup.values() if pid is not None}
        players = self._player_repo.get_many(conn, rostered)
        missing = sorted(rostered - players.keys())
        if missing:
            raise SettlementError(
                f"Round {round_.round_number}: roster slots reference unknown players: {', '.join(missing)}"
            )

        def is_eligible(player_id: str) -> bool:
            return players[player_id].is_eligible_for(round_.round_number)

        all_scores = []
        for roster in rosters:
            history = self._roster_repo.history_for_user(conn, roster.user_id)
            all_scores.extend(score_lineup(
                roster.user_id,
                round_.id,
                round_.round_number,
                lineups[roster.id],
                history,
                stat_points,
                is_eligible,
            ))
            summary.rosters_scored += 1
        summary.roster_rows = self._score_repo.replace_for_round(conn, round_.id, all_scores)
