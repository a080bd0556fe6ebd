"""
Data models for the playoff league backend.
Domain objects only; no persistence or API logic.

Every persisted row enters the engine through a `from_row` constructor that
validates field ranges, so malformed rows are rejected at the boundary.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_EVEN
from enum import Enum
from typing import Any, Mapping


# ---------- Numbers ----------
# Derived points are stored with four decimal places; display rounds further.
POINTS_QUANTUM = Decimal("0.0001")
CENTS = Decimal("0.01")

MAX_SCORE = 99


def to_points(value: Any) -> Decimal:
    """Convert a stored number (int, float, str, Decimal) to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal(0)
    return Decimal(str(value))


def quantize_points(value: Decimal) -> Decimal:
    return value.quantize(POINTS_QUANTUM, rounding=ROUND_HALF_EVEN)


def parse_timestamp(s: str | None) -> datetime | None:
    """ISO-8601 string to aware datetime (naive values are taken as UTC)."""
    if not s:
        return None
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class InvalidRowError(ValueError):
    """A persisted row violates a field range or roster invariant."""


def _require_score(value: Any, field: str, owner: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRowError(f"{owner}: {field} must be a whole number, got {value!r}")
    if value < 0 or value > MAX_SCORE:
        raise InvalidRowError(f"{owner}: {field} must be between 0 and {MAX_SCORE}, got {value}")
    return value


def _require_final_score(value: Any, field: str, owner: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRowError(f"{owner}: {field} must be a whole number, got {value!r}")
    if value < 0:
        raise InvalidRowError(f"{owner}: {field} must be non-negative, got {value}")
    return value


# ---------- Roster slots ----------
class Slot(str, Enum):
    """Fixed lineup positions, in display order."""
    QB = "QB"
    RB1 = "RB1"
    RB2 = "RB2"
    WR1 = "WR1"
    WR2 = "WR2"
    TE = "TE"
    FLEX = "FLEX"
    K = "K"
    DEF = "DEF"


ROSTER_SLOTS: tuple[Slot, ...] = tuple(Slot)

# Player positions each slot accepts.
SLOT_POSITIONS: dict[Slot, frozenset[str]] = {
    Slot.QB: frozenset({"QB"}),
    Slot.RB1: frozenset({"RB"}),
    Slot.RB2: frozenset({"RB"}),
    Slot.WR1: frozenset({"WR"}),
    Slot.WR2: frozenset({"WR"}),
    Slot.TE: frozenset({"TE"}),
    Slot.FLEX: frozenset({"RB", "WR", "TE"}),
    Slot.K: frozenset({"K"}),
    Slot.DEF: frozenset({"DEF"}),
}


def parse_slot(value: str) -> Slot:
    try:
        return Slot(str(value).strip().upper())
    except ValueError:
        raise InvalidRowError(
            f"Unknown roster slot {value!r}. Must be one of: {', '.join(s.value for s in ROSTER_SLOTS)}"
        ) from None


# ---------- Predictor lock mode ----------
class PredictorLockMode(str, Enum):
    """When a predictor entry stops being editable."""
    KICKOFF = "kickoff"  # game kickoff has passed
    ROUND = "round"      # round predictor_locked flag is set


# ---------- User ----------
@dataclass
class User:
    """A league member. Admins may trigger settlement and round changes."""
    id: str
    username: str
    created_at: datetime
    is_admin: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "is_admin": self.is_admin,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Round ----------
@dataclass
class Round:
    """
    One playoff week. round_number is the ordinal (1 = Wild Card).
    At most one round is current; is_locked freezes rosters, predictor_locked freezes predictions.
    """
    id: str
    round_number: int
    name: str
    is_current: bool = False
    is_locked: bool = False
    predictor_locked: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Round:
        number = row["round_number"]
        if isinstance(number, bool) or not isinstance(number, int) or number < 1:
            raise InvalidRowError(f"Round {row['id']}: round_number must be a positive integer, got {number!r}")
        return cls(
            id=row["id"],
            round_number=number,
            name=row["name"],
            is_current=bool(row["is_current"]),
            is_locked=bool(row["is_locked"]),
            predictor_locked=bool(row["predictor_locked"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "round_number": self.round_number,
            "name": self.name,
            "is_current": self.is_current,
            "is_locked": self.is_locked,
            "predictor_locked": self.predictor_locked,
        }


# ---------- Game ----------
@dataclass
class Game:
    """
    A predictor matchup within one round.
    Settleable only when is_final and both final scores are present.
    """
    id: str
    round_id: str
    away_team: str
    home_team: str
    kickoff_at: datetime | None = None
    away_score_final: int | None = None
    home_score_final: int | None = None
    is_final: bool = False

    @property
    def is_settleable(self) -> bool:
        return self.is_final and self.away_score_final is not None and self.home_score_final is not None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Game:
        owner = f"Game {row['id']}"
        away = row["away_score_final"]
        home = row["home_score_final"]
        if away is not None:
            _require_final_score(away, "away_score_final", owner)
        if home is not None:
            _require_final_score(home, "home_score_final", owner)
        return cls(
            id=row["id"],
            round_id=row["round_id"],
            away_team=row["away_team"],
            home_team=row["home_team"],
            kickoff_at=parse_timestamp(row["kickoff_at"]),
            away_score_final=away,
            home_score_final=home,
            is_final=bool(row["is_final"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "round_id": self.round_id,
            "away_team": self.away_team,
            "home_team": self.home_team,
            "kickoff_at": self.kickoff_at.isoformat() if self.kickoff_at else None,
            "away_score_final": self.away_score_final,
            "home_score_final": self.home_score_final,
            "is_final": self.is_final,
        }


# ---------- Player ----------
@dataclass
class Player:
    """
    An NFL player (or team defense). eliminated_round_number is the last round
    the player's team played; the player is ineligible for any later round.
    """
    id: str
    name: str
    team: str
    position: str
    eliminated_round_number: int | None = None

    def is_eligible_for(self, round_number: int) -> bool:
        return self.eliminated_round_number is None or round_number <= self.eliminated_round_number

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "team": self.team,
            "position": self.position,
            "eliminated_round_number": self.eliminated_round_number,
        }


# ---------- Roster ----------
@dataclass
class Roster:
    """One user's lineup container for one round."""
    id: str
    user_id: str
    round_id: str


@dataclass
class RosterSlotAssignment:
    roster_id: str
    slot: Slot
    player_id: str | None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> RosterSlotAssignment:
        return cls(
            roster_id=row["roster_id"],
            slot=parse_slot(row["slot"]),
            player_id=row["player_id"] or None,
        )


def build_lineup(assignments: list[RosterSlotAssignment]) -> dict[Slot, str | None]:
    """
    Full nine-slot lineup from stored assignments (missing slots are empty).
    A player may occupy at most one slot.
    """
    lineup: dict[Slot, str | None] = {slot: None for slot in ROSTER_SLOTS}
    seen: dict[str, Slot] = {}
    for a in assignments:
        if a.player_id is not None:
            if a.player_id in seen:
                raise InvalidRowError(
                    f"Roster {a.roster_id}: player {a.player_id} appears in both "
                    f"{seen[a.player_id].value} and {a.slot.value}"
                )
            seen[a.player_id] = a.slot
        lineup[a.slot] = a.player_id
    return lineup


# ---------- Stat line ----------
@dataclass
class PlayerStatLine:
    """Raw fantasy points for one player in one round ("base points")."""
    player_id: str
    round_id: str
    fantasy_points: Decimal

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> PlayerStatLine:
        points = row["fantasy_points"]
        if points is None:
            raise InvalidRowError(f"Stat line {row['player_id']}/{row['round_id']}: fantasy_points missing")
        value = to_points(points)
        if value < 0:
            raise InvalidRowError(
                f"Stat line {row['player_id']}/{row['round_id']}: fantasy_points must be non-negative, got {value}"
            )
        return cls(player_id=row["player_id"], round_id=row["round_id"], fantasy_points=value)


# ---------- Predictor entry ----------
@dataclass
class PredictorEntry:
    """One user's predicted final score for one game (both 0-99)."""
    game_id: str
    user_id: str
    away_score_pred: int
    home_score_pred: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> PredictorEntry:
        owner = f"Prediction {row['user_id']}/{row['game_id']}"
        return cls(
            game_id=row["game_id"],
            user_id=row["user_id"],
            away_score_pred=_require_score(row["away_score_pred"], "away_score_pred", owner),
            home_score_pred=_require_score(row["home_score_pred"], "home_score_pred", owner),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_id": self.game_id,
            "user_id": self.user_id,
            "away_score_pred": self.away_score_pred,
            "home_score_pred": self.home_score_pred,
        }


# ---------- Derived rows (owned by settlement) ----------
@dataclass
class RosterSpotScore:
    user_id: str
    round_id: str
    slot: Slot
    base_points: Decimal
    multiplied_points: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "round_id": self.round_id,
            "slot": self.slot.value,
            "base_points": float(self.base_points),
            "multiplied_points": float(self.multiplied_points),
        }


@dataclass
class PredictorPointRow:
    """base_points is unweighted (winner + accuracy + jackpot); weighted_points includes round weight."""
    game_id: str
    user_id: str
    base_points: Decimal
    weighted_points: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_id": self.game_id,
            "user_id": self.user_id,
            "base_points": float(self.base_points),
            "weighted_points": float(self.weighted_points),
        }


# ---------- Leaderboard projections ----------
@dataclass
class LeaderboardTotalRow:
    user_id: str
    username: str
    total_points: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "username": self.username, "total_points": float(self.total_points)}


@dataclass
class LeaderboardRoundRow:
    user_id: str
    username: str
    round_id: str
    round_number: int
    round_name: str
    round_points: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "round_id": self.round_id,
            "round_number": self.round_number,
            "round_name": self.round_name,
            "round_points": float(self.round_points),
        }


@dataclass
class NetDollarRow:
    """Predictor money view: 100 points = $1, relative to the group average."""
    user_id: str
    username: str
    total_points: Decimal
    net_dollars: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "total_points": float(self.total_points),
            "net_dollars": float(self.net_dollars),
        }
