"""
Repository interfaces for league data.
No business logic, only read/write operations.

`create*` / `upsert*` methods used by collaborators commit immediately.
`insert`, `replace*`, `delete*` and `update*` methods do not commit: they run inside the
caller's `transaction(conn)` block so a settlement pass or a roster seed
is all-or-nothing.
"""
from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from playoff_league.models import (
    Game,
    Player,
    PlayerStatLine,
    PredictorEntry,
    PredictorPointRow,
    Roster,
    RosterSlotAssignment,
    RosterSpotScore,
    Round,
    Slot,
    User,
    build_lineup,
    parse_slot,
    parse_timestamp,
    to_points,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


# ---------- UserRepository ----------


class UserRepository:
    """CRUD for users."""

    def create(
        self, conn: sqlite3.Connection, username: str, is_admin: bool = False, id: str | None = None
    ) -> User:
        uid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO users (id, username, is_admin, created_at) VALUES (?, ?, ?, ?)",
            (uid, username, int(is_admin), now),
        )
        conn.commit()
        return User(id=uid, username=username, is_admin=is_admin, created_at=parse_timestamp(now))

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute(
            "SELECT id, username, is_admin, created_at FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return User(
            id=row["id"],
            username=row["username"],
            is_admin=bool(row["is_admin"]),
            created_at=parse_timestamp(row["created_at"]),
        )

    def usernames(self, conn: sqlite3.Connection) -> dict[str, str]:
        """user_id -> username for every user."""
        rows = conn.execute("SELECT id, username FROM users").fetchall()
        return {r["id"]: r["username"] for r in rows}


# ---------- RoundRepository ----------

_ROUND_COLS = "id, round_number, name, is_current, is_locked, predictor_locked"


class RoundRepository:
    """Reads and flag updates for rounds."""

    def create(
        self,
        conn: sqlite3.Connection,
        round_number: int,
        name: str,
        is_current: bool = False,
        id: str | None = None,
    ) -> Round:
        rid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO rounds (id, round_number, name, is_current, is_locked, predictor_locked) "
            "VALUES (?, ?, ?, ?, 0, 0)",
            (rid, round_number, name, int(is_current)),
        )
        conn.commit()
        return Round(id=rid, round_number=round_number, name=name, is_current=is_current)

    def get(self, conn: sqlite3.Connection, round_id: str) -> Round | None:
        row = conn.execute(f"SELECT {_ROUND_COLS} FROM rounds WHERE id = ?", (round_id,)).fetchone()
        return Round.from_row(row) if row is not None else None

    def get_current(self, conn: sqlite3.Connection) -> Round | None:
        row = conn.execute(f"SELECT {_ROUND_COLS} FROM rounds WHERE is_current = 1").fetchone()
        return Round.from_row(row) if row is not None else None

    def get_by_number(self, conn: sqlite3.Connection, round_number: int) -> Round | None:
        row = conn.execute(
            f"SELECT {_ROUND_COLS} FROM rounds WHERE round_number = ?", (round_number,)
        ).fetchone()
        return Round.from_row(row) if row is not None else None

    def update_flags(
        self,
        conn: sqlite3.Connection,
        round_id: str,
        is_current: bool | None = None,
        is_locked: bool | None = None,
        predictor_locked: bool | None = None,
    ) -> None:
        sets: list[str] = []
        args: list[object] = []
        for col, value in (
            ("is_current", is_current),
            ("is_locked", is_locked),
            ("predictor_locked", predictor_locked),
        ):
            if value is not None:
                sets.append(f"{col} = ?")
                args.append(int(value))
        if not sets:
            return
        args.append(round_id)
        conn.execute(f"UPDATE rounds SET {', '.join(sets)} WHERE id = ?", tuple(args))


# ---------- GameRepository ----------

_GAME_COLS = "id, round_id, kickoff_at, away_team, home_team, away_score_final, home_score_final, is_final"


class GameRepository:
    """Predictor games. Final scores are entered by the admin collaborator."""

    def create(
        self,
        conn: sqlite3.Connection,
        round_id: str,
        away_team: str,
        home_team: str,
        kickoff_at: datetime | None = None,
        id: str | None = None,
    ) -> Game:
        gid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO games (id, round_id, kickoff_at, away_team, home_team, is_final) VALUES (?, ?, ?, ?, ?, 0)",
            (gid, round_id, _iso(kickoff_at), away_team.upper(), home_team.upper()),
        )
        conn.commit()
        return Game(
            id=gid, round_id=round_id, away_team=away_team.upper(), home_team=home_team.upper(),
            kickoff_at=kickoff_at,
        )

    def set_final(
        self,
        conn: sqlite3.Connection,
        game_id: str,
        away_score: int | None,
        home_score: int | None,
        is_final: bool = True,
    ) -> None:
        conn.execute(
            "UPDATE games SET away_score_final = ?, home_score_final = ?, is_final = ? WHERE id = ?",
            (away_score, home_score, int(is_final), game_id),
        )
        conn.commit()

    def get(self, conn: sqlite3.Connection, game_id: str) -> Game | None:
        row = conn.execute(f"SELECT {_GAME_COLS} FROM games WHERE id = ?", (game_id,)).fetchone()
        return Game.from_row(row) if row is not None else None

    def list_by_round(self, conn: sqlite3.Connection, round_id: str) -> list[Game]:
        rows = conn.execute(
            f"SELECT {_GAME_COLS} FROM games WHERE round_id = ? ORDER BY kickoff_at, id",
            (round_id,),
        ).fetchall()
        return [Game.from_row(r) for r in rows]


# ---------- PlayerRepository ----------


class PlayerRepository:
    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        team: str,
        position: str,
        eliminated_round_number: int | None = None,
        id: str | None = None,
    ) -> Player:
        pid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO players (id, name, team, position, eliminated_round_number) VALUES (?, ?, ?, ?, ?)",
            (pid, name, team.upper(), position.upper(), eliminated_round_number),
        )
        conn.commit()
        return Player(
            id=pid, name=name, team=team.upper(), position=position.upper(),
            eliminated_round_number=eliminated_round_number,
        )

    def get_many(self, conn: sqlite3.Connection, player_ids: Iterable[str]) -> dict[str, Player]:
        ids = sorted(set(player_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = conn.execute(
            f"SELECT id, name, team, position, eliminated_round_number FROM players WHERE id IN ({placeholders})",
            tuple(ids),
        ).fetchall()
        return {
            r["id"]: Player(
                id=r["id"],
                name=r["name"],
                team=r["team"],
                position=r["position"],
                eliminated_round_number=r["eliminated_round_number"],
            )
            for r in rows
        }


# ---------- RosterRepository ----------


class RosterRepository:
    """Rosters and their slot assignments."""

    def create(self, conn: sqlite3.Connection, user_id: str, round_id: str, id: str | None = None) -> Roster:
        roster = self.insert(conn, user_id, round_id, id=id)
        conn.commit()
        return roster

    def insert(self, conn: sqlite3.Connection, user_id: str, round_id: str, id: str | None = None) -> Roster:
        """Like create, without committing; for use inside transaction(conn)."""
        rid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO rosters (id, user_id, round_id, created_at) VALUES (?, ?, ?, ?)",
            (rid, user_id, round_id, _now_iso()),
        )
        return Roster(id=rid, user_id=user_id, round_id=round_id)

    def get(self, conn: sqlite3.Connection, user_id: str, round_id: str) -> Roster | None:
        row = conn.execute(
            "SELECT id, user_id, round_id FROM rosters WHERE user_id = ? AND round_id = ?",
            (user_id, round_id),
        ).fetchone()
        if row is None:
            return None
        return Roster(id=row["id"], user_id=row["user_id"], round_id=row["round_id"])

    def list_by_round(self, conn: sqlite3.Connection, round_id: str) -> list[Roster]:
        rows = conn.execute(
            "SELECT id, user_id, round_id FROM rosters WHERE round_id = ? ORDER BY user_id",
            (round_id,),
        ).fetchall()
        return [Roster(id=r["id"], user_id=r["user_id"], round_id=r["round_id"]) for r in rows]

    def get_lineup(self, conn: sqlite3.Connection, roster_id: str) -> dict[Slot, str | None]:
        rows = conn.execute(
            "SELECT roster_id, slot, player_id FROM roster_players WHERE roster_id = ?",
            (roster_id,),
        ).fetchall()
        return build_lineup([RosterSlotAssignment.from_row(r) for r in rows])

    def upsert_slots(
        self, conn: sqlite3.Connection, roster_id: str, lineup: dict[Slot, str | None]
    ) -> None:
        """Write every given slot, keyed by (roster_id, slot)."""
        conn.executemany(
            "INSERT INTO roster_players (roster_id, slot, player_id) VALUES (?, ?, ?) "
            "ON CONFLICT(roster_id, slot) DO UPDATE SET player_id = excluded.player_id",
            [(roster_id, slot.value, player_id) for slot, player_id in lineup.items()],
        )

    def history_for_user(self, conn: sqlite3.Connection, user_id: str) -> dict[int, set[str]]:
        """round_number -> player ids rostered by this user in that round (any slot)."""
        rows = conn.execute(
            """
            SELECT rd.round_number AS round_number, rp.player_id AS player_id
            FROM rosters r
            JOIN rounds rd ON rd.id = r.round_id
            JOIN roster_players rp ON rp.roster_id = r.id
            WHERE r.user_id = ? AND rp.player_id IS NOT NULL
            """,
            (user_id,),
        ).fetchall()
        history: dict[int, set[str]] = {}
        for r in rows:
            history.setdefault(r["round_number"], set()).add(r["player_id"])
        return history


# ---------- StatLineRepository ----------


class StatLineRepository:
    def upsert(self, conn: sqlite3.Connection, player_id: str, round_id: str, fantasy_points: float) -> None:
        conn.execute(
            "INSERT INTO player_stats (player_id, round_id, fantasy_points) VALUES (?, ?, ?) "
            "ON CONFLICT(player_id, round_id) DO UPDATE SET fantasy_points = excluded.fantasy_points",
            (player_id, round_id, fantasy_points),
        )
        conn.commit()

    def points_for_round(self, conn: sqlite3.Connection, round_id: str) -> dict[str, Decimal]:
        rows = conn.execute(
            "SELECT player_id, round_id, fantasy_points FROM player_stats WHERE round_id = ?",
            (round_id,),
        ).fetchall()
        lines = [PlayerStatLine.from_row(r) for r in rows]
        return {line.player_id: line.fantasy_points for line in lines}


# ---------- PredictorEntryRepository ----------


class PredictorEntryRepository:
    def upsert(
        self, conn: sqlite3.Connection, game_id: str, user_id: str, away_score_pred: int, home_score_pred: int
    ) -> PredictorEntry:
        conn.execute(
            "INSERT INTO predictor_entries (game_id, user_id, away_score_pred, home_score_pred, updated_at) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(game_id, user_id) DO UPDATE SET "
            "away_score_pred = excluded.away_score_pred, home_score_pred = excluded.home_score_pred, "
            "updated_at = excluded.updated_at",
            (game_id, user_id, away_score_pred, home_score_pred, _now_iso()),
        )
        conn.commit()
        return PredictorEntry(
            game_id=game_id, user_id=user_id,
            away_score_pred=away_score_pred, home_score_pred=home_score_pred,
        )

    def list_by_game(self, conn: sqlite3.Connection, game_id: str) -> list[PredictorEntry]:
        rows = conn.execute(
            "SELECT game_id, user_id, away_score_pred, home_score_pred FROM predictor_entries "
            "WHERE game_id = ? ORDER BY user_id",
            (game_id,),
        ).fetchall()
        return [PredictorEntry.from_row(r) for r in rows]

    def list_for_user_round(self, conn: sqlite3.Connection, user_id: str, round_id: str) -> dict[str, PredictorEntry]:
        """game_id -> the user's entry, for games in the round."""
        rows = conn.execute(
            """
            SELECT pe.game_id AS game_id, pe.user_id AS user_id,
                   pe.away_score_pred AS away_score_pred, pe.home_score_pred AS home_score_pred
            FROM predictor_entries pe
            JOIN games g ON g.id = pe.game_id
            WHERE pe.user_id = ? AND g.round_id = ?
            """,
            (user_id, round_id),
        ).fetchall()
        entries = [PredictorEntry.from_row(r) for r in rows]
        return {e.game_id: e for e in entries}


# ---------- Derived rows ----------


class RosterSpotScoreRepository:
    """roster_spot_scores: owned by settlement."""

    def replace_for_round(
        self, conn: sqlite3.Connection, round_id: str, scores: Iterable[RosterSpotScore]
    ) -> int:
        conn.execute("DELETE FROM roster_spot_scores WHERE round_id = ?", (round_id,))
        rows = [
            (s.user_id, s.round_id, s.slot.value, float(s.base_points), float(s.multiplied_points))
            for s in scores
        ]
        conn.executemany(
            "INSERT INTO roster_spot_scores (user_id, round_id, slot, base_points, multiplied_points) "
            "VALUES (?, ?, ?, ?, ?)",
            rows,
        )
        return len(rows)

    def list_for_user_round(self, conn: sqlite3.Connection, user_id: str, round_id: str) -> dict[Slot, RosterSpotScore]:
        rows = conn.execute(
            "SELECT user_id, round_id, slot, base_points, multiplied_points FROM roster_spot_scores "
            "WHERE user_id = ? AND round_id = ?",
            (user_id, round_id),
        ).fetchall()
        scores = [self._from_row(r) for r in rows]
        return {s.slot: s for s in scores}

    def round_points(self, conn: sqlite3.Connection) -> list[tuple[str, str, Decimal]]:
        """(user_id, round_id, multiplied_points) for every stored slot."""
        rows = conn.execute(
            "SELECT user_id, round_id, multiplied_points FROM roster_spot_scores ORDER BY user_id, round_id, slot"
        ).fetchall()
        return [(r["user_id"], r["round_id"], to_points(r["multiplied_points"])) for r in rows]

    @staticmethod
    def _from_row(row: sqlite3.Row) -> RosterSpotScore:
        return RosterSpotScore(
            user_id=row["user_id"],
            round_id=row["round_id"],
            slot=parse_slot(row["slot"]),
            base_points=to_points(row["base_points"]),
            multiplied_points=to_points(row["multiplied_points"]),
        )


class PredictorPointRepository:
    """predictor_points: owned by settlement."""

    def replace_for_game(self, conn: sqlite3.Connection, game_id: str, points: Iterable[PredictorPointRow]) -> int:
        conn.execute("DELETE FROM predictor_points WHERE game_id = ?", (game_id,))
        rows = [
            (p.game_id, p.user_id, float(p.base_points), float(p.weighted_points))
            for p in points
        ]
        conn.executemany(
            "INSERT INTO predictor_points (game_id, user_id, base_points, weighted_points) VALUES (?, ?, ?, ?)",
            rows,
        )
        return len(rows)

    def delete_for_game(self, conn: sqlite3.Connection, game_id: str) -> int:
        cur = conn.execute("DELETE FROM predictor_points WHERE game_id = ?", (game_id,))
        return cur.rowcount

    def list_for_game(self, conn: sqlite3.Connection, game_id: str) -> list[PredictorPointRow]:
        rows = conn.execute(
            "SELECT game_id, user_id, base_points, weighted_points FROM predictor_points "
            "WHERE game_id = ? ORDER BY user_id",
            (game_id,),
        ).fetchall()
        return [
            PredictorPointRow(
                game_id=r["game_id"],
                user_id=r["user_id"],
                base_points=to_points(r["base_points"]),
                weighted_points=to_points(r["weighted_points"]),
            )
            for r in rows
        ]

    def list_for_user_round(self, conn: sqlite3.Connection, user_id: str, round_id: str) -> dict[str, PredictorPointRow]:
        """game_id -> the user's settled row, for games in the round."""
        rows = conn.execute(
            """
            SELECT pp.game_id AS game_id, pp.user_id AS user_id,
                   pp.base_points AS base_points, pp.weighted_points AS weighted_points
            FROM predictor_points pp
            JOIN games g ON g.id = pp.game_id
            WHERE pp.user_id = ? AND g.round_id = ?
            """,
            (user_id, round_id),
        ).fetchall()
        return {
            r["game_id"]: PredictorPointRow(
                game_id=r["game_id"],
                user_id=r["user_id"],
                base_points=to_points(r["base_points"]),
                weighted_points=to_points(r["weighted_points"]),
            )
            for r in rows
        }

    def round_points(self, conn: sqlite3.Connection) -> list[tuple[str, str, Decimal]]:
        """(user_id, round_id, weighted_points) for every stored game row."""
        rows = conn.execute(
            """
            SELECT pp.user_id AS user_id, g.round_id AS round_id, pp.weighted_points AS weighted_points
            FROM predictor_points pp
            JOIN games g ON g.id = pp.game_id
            ORDER BY pp.user_id, g.round_id, pp.game_id
            """
        ).fetchall()
        return [(r["user_id"], r["round_id"], to_points(r["weighted_points"])) for r in rows]
