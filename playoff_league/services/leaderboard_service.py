"""
Leaderboards over settled points: running totals, per-round subtotals,
and the predictor net-dollar view. Read-only.
"""
from __future__ import annotations

import sqlite3
from collections import defaultdict
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Iterable, Mapping

from playoff_league.models import (
    CENTS,
    LeaderboardRoundRow,
    LeaderboardTotalRow,
    NetDollarRow,
    quantize_points,
)
from playoff_league.persistence.repositories import (
    PredictorPointRepository,
    RosterSpotScoreRepository,
    RoundRepository,
    UserRepository,
)
from playoff_league.services.round_service import RoundNotFoundError

POINTS_PER_DOLLAR = Decimal(100)


def sum_by_user(rows: Iterable[tuple[str, str, Decimal]], round_id: str | None = None) -> dict[str, Decimal]:
    """Total points per user from (user_id, round_id, points) rows, optionally one round only."""
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for user_id, row_round_id, points in rows:
        if round_id is None or row_round_id == round_id:
            totals[user_id] += points
    return dict(totals)


def net_dollars(totals: Mapping[str, Decimal]) -> dict[str, Decimal]:
    """(user_total - group average) / 100 per user, in cents. Sums to ~0."""
    if not totals:
        return {}
    average = sum(totals.values(), Decimal(0)) / Decimal(len(totals))
    return {
        user_id: ((total - average) / POINTS_PER_DOLLAR).quantize(CENTS, rounding=ROUND_HALF_EVEN)
        for user_id, total in totals.items()
    }


def _ranked(rows: list, points_attr: str) -> list:
    return sorted(rows, key=lambda r: (-getattr(r, points_attr), r.username.lower(), r.user_id))


class LeaderboardService:
    """Projects stored RosterSpotScores and PredictorPointRows into display rows."""

    def __init__(self) -> None:
        self._user_repo = UserRepository()
        self._round_repo = RoundRepository()
        self._score_repo = RosterSpotScoreRepository()
        self._points_repo = PredictorPointRepository()

    # ---------- Fantasy ----------

    def fantasy_totals(self, conn: sqlite3.Connection) -> list[LeaderboardTotalRow]:
        return self._totals(conn, self._score_repo.round_points(conn))

    def fantasy_round_totals(self, conn: sqlite3.Connection, round_id: str) -> list[LeaderboardRoundRow]:
        return self._round_totals(conn, self._score_repo.round_points(conn), round_id)

    # ---------- Predictor ----------

    def predictor_totals(self, conn: sqlite3.Connection) -> list[LeaderboardTotalRow]:
        return self._totals(conn, self._points_repo.round_points(conn))

    def predictor_round_totals(self, conn: sqlite3.Connection, round_id: str) -> list[LeaderboardRoundRow]:
        return self._round_totals(conn, self._points_repo.round_points(conn), round_id)

    def predictor_net_dollars(self, conn: sqlite3.Connection, round_id: str | None = None) -> list[NetDollarRow]:
        """
        Net money per user against the group average over every user;
        users with no entries count as 0 points. With round_id, only that
        round's weighted points count.
        """
        if round_id is not None and self._round_repo.get(conn, round_id) is None:
            raise RoundNotFoundError(f"Round not found: {round_id}")
        usernames = self._user_repo.usernames(conn)
        by_user = sum_by_user(self._points_repo.round_points(conn), round_id=round_id)
        totals = {uid: by_user.get(uid, Decimal(0)) for uid in usernames}
        net = net_dollars(totals)
        rows = [
            NetDollarRow(
                user_id=uid,
                username=usernames[uid],
                total_points=quantize_points(totals[uid]),
                net_dollars=net[uid],
            )
            for uid in totals
        ]
        return _ranked(rows, "total_points")

    # ---------- Helpers ----------

    def _totals(
        self, conn: sqlite3.Connection, rows: list[tuple[str, str, Decimal]]
    ) -> list[LeaderboardTotalRow]:
        usernames = self._user_repo.usernames(conn)
        by_user = sum_by_user(rows)
        out = [
            LeaderboardTotalRow(
                user_id=uid,
                username=username,
                total_points=quantize_points(by_user.get(uid, Decimal(0))),
            )
            for uid, username in usernames.items()
        ]
        return _ranked(out, "total_points")

    def _round_totals(
        self, conn: sqlite3.Connection, rows: list[tuple[str, str, Decimal]], round_id: str
    ) -> list[LeaderboardRoundRow]:
        round_ = self._round_repo.get(conn, round_id)
        if round_ is None:
            raise RoundNotFoundError(f"Round not found: {round_id}")
        usernames = self._user_repo.usernames(conn)
        by_user = sum_by_user(rows, round_id=round_id)
        out = [
            LeaderboardRoundRow(
                user_id=uid,
                username=username,
                round_id=round_.id,
                round_number=round_.round_number,
                round_name=round_.name,
                round_points=quantize_points(by_user.get(uid, Decimal(0))),
            )
            for uid, username in usernames.items()
        ]
        return _ranked(out, "round_points")
