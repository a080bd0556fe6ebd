"""
Round lifecycle: advancing the current round, lock toggles, edit guards.
Round selection is always passed in explicitly; "current" only matters when advancing.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from playoff_league.models import Game, PredictorLockMode, Round
from playoff_league.persistence.db import transaction
from playoff_league.persistence.repositories import RoundRepository

_log = logging.getLogger("playoff_league.rounds")


# ---------- Exceptions ----------


class RoundNotFoundError(ValueError):
    """No round with the given id."""


class RoundAdvanceError(ValueError):
    """Cannot advance: no current round, or already at the final round."""


class RoundLockedError(ValueError):
    """Rosters cannot change once the round is locked."""


class EntryLockedError(ValueError):
    """Predictions cannot change once the game (or round) is locked."""


# ---------- Guards ----------


def is_prediction_locked(round_: Round, game: Game, now: datetime, mode: PredictorLockMode) -> bool:
    """
    A predictor-locked round or a finalized game always refuses edits.
    kickoff mode also locks a game once its kickoff instant has passed.
    """
    if round_.predictor_locked or game.is_final:
        return True
    if mode == PredictorLockMode.KICKOFF:
        return game.kickoff_at is not None and game.kickoff_at <= now
    return False


# ---------- RoundService ----------


class RoundService:
    """
    Domain logic for rounds: advance, lock toggles, guards.
    Persistence is delegated to repositories.
    """

    def __init__(self) -> None:
        self._round_repo = RoundRepository()

    def get_round(self, conn: sqlite3.Connection, round_id: str) -> Round:
        round_ = self._round_repo.get(conn, round_id)
        if round_ is None:
            raise RoundNotFoundError(f"Round not found: {round_id}")
        return round_

    def advance_current_round(self, conn: sqlite3.Connection) -> Round:
        """
        Lock the current round (rosters and predictions), then mark the next
        round_number current. Atomic; returns the new current round.
        """
        with transaction(conn):
            current = self._round_repo.get_current(conn)
            if current is None:
                raise RoundAdvanceError("No current round is set. Mark one round as current first.")
            nxt = self._round_repo.get_by_number(conn, current.round_number + 1)
            if nxt is None:
                raise RoundAdvanceError(
                    f"No next round exists after round {current.round_number} ({current.name})."
                )
            self._round_repo.update_flags(
                conn, current.id, is_current=False, is_locked=True, predictor_locked=True
            )
            self._round_repo.update_flags(conn, nxt.id, is_current=True)
        _log.info("Advanced current round %s -> %s", current.round_number, nxt.round_number)
        return self.get_round(conn, nxt.id)

    def set_round_lock(self, conn: sqlite3.Connection, round_id: str, locked: bool) -> Round:
        self.get_round(conn, round_id)
        with transaction(conn):
            self._round_repo.update_flags(conn, round_id, is_locked=locked)
        _log.info("Round %s roster lock set to %s", round_id, locked)
        return self.get_round(conn, round_id)

    def set_predictor_lock(self, conn: sqlite3.Connection, round_id: str, locked: bool) -> Round:
        self.get_round(conn, round_id)
        with transaction(conn):
            self._round_repo.update_flags(conn, round_id, predictor_locked=locked)
        _log.info("Round %s predictor lock set to %s", round_id, locked)
        return self.get_round(conn, round_id)

    def assert_can_edit_roster(self, conn: sqlite3.Connection, round_id: str) -> Round:
        """Raise if the round is missing or locked; return it otherwise."""
        round_ = self.get_round(conn, round_id)
        if round_.is_locked:
            raise RoundLockedError(f"Round {round_.round_number} ({round_.name}) is locked; rosters cannot change")
        return round_
