"""
Predictor scoring for one finalized game.
Implements the PREDICTOR RULES: winner points, score-accuracy pot,
perfect-score jackpot, and round weighting.

All pots are expressed in points (100 points = $1). Values are exact
Decimals; rounding to storage precision happens only when rows are built.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from itertools import groupby
from typing import Mapping, Sequence

from playoff_league.models import PredictorEntry, PredictorPointRow, quantize_points


# ---------- Winner points ----------
WINNER_POINTS = Decimal(100)
MAJORITY_THRESHOLD = Decimal("0.5")

# ---------- Accuracy pot ----------
POT_POINTS_PER_ENTRY = Decimal(100)  # pot = (N - K) * 100

# Share of the pot per finishing place, by number of paid places K.
ACCURACY_SPLITS: dict[int, tuple[Decimal, ...]] = {
    1: (Decimal("1.00"),),
    2: (Decimal("0.60"), Decimal("0.40")),
    3: (Decimal("0.45"), Decimal("0.33"), Decimal("0.22")),
    4: (Decimal("0.40"), Decimal("0.30"), Decimal("0.20"), Decimal("0.10")),
}

# ---------- Jackpot ----------
JACKPOT_POINTS_PER_ENTRY = Decimal(400)  # each perfect entry earns 400 * (N - P)

AWAY = "away"
HOME = "home"


def winner_side(away: int, home: int) -> str | None:
    """Side with the higher score; None for a tie."""
    if away > home:
        return AWAY
    if home > away:
        return HOME
    return None


def winner_points(
    entries: Sequence[PredictorEntry], final_away: int, final_home: int
) -> dict[str, Decimal]:
    """
    Correct-winner points per user.
    C >= N/2: 100 each. 0 < C < N/2: (N - C) * 100 / C each. C == 0: nobody scores.
    A predicted tie never counts as correct.
    """
    points = {e.user_id: Decimal(0) for e in entries}
    actual = winner_side(final_away, final_home)
    correct = [
        e for e in entries
        if actual is not None and winner_side(e.away_score_pred, e.home_score_pred) == actual
    ]
    n, c = len(entries), len(correct)
    if c == 0:
        return points
    if Decimal(c) / Decimal(n) >= MAJORITY_THRESHOLD:
        each = WINNER_POINTS
    else:
        each = Decimal(n - c) * WINNER_POINTS / Decimal(c)
    for e in correct:
        points[e.user_id] = each
    return points


def accuracy_key(entry: PredictorEntry, final_away: int, final_home: int) -> tuple[int, int, int]:
    """(total error, spread error, total-points error); lower is closer."""
    total_error = abs(entry.away_score_pred - final_away) + abs(entry.home_score_pred - final_home)
    spread_error = abs(
        (entry.away_score_pred - entry.home_score_pred) - (final_away - final_home)
    )
    points_error = abs(
        (entry.away_score_pred + entry.home_score_pred) - (final_away + final_home)
    )
    return total_error, spread_error, points_error


def split_table(k: int) -> tuple[Decimal, ...]:
    """
    Pot shares for K paid places, best first, summing to 1.
    K <= 4 uses the published tables; larger K weights place i by (K - i + 1),
    which reproduces the K = 4 table.
    """
    if k < 1:
        return ()
    if k in ACCURACY_SPLITS:
        return ACCURACY_SPLITS[k]
    denominator = Decimal(k * (k + 1) // 2)
    return tuple(Decimal(k - i) / denominator for i in range(k))


def accuracy_points(
    entries: Sequence[PredictorEntry], final_away: int, final_home: int
) -> dict[str, Decimal]:
    """
    Distribute the accuracy pot among the closest K = floor(N / 2) entries.
    Entries tied on all three keys pool the shares of the places they occupy
    and split them evenly; following places shift down by the tie size.
    """
    points = {e.user_id: Decimal(0) for e in entries}
    n = len(entries)
    k = n // 2
    if k == 0:
        return points
    pot = Decimal(n - k) * POT_POINTS_PER_ENTRY
    shares = split_table(k)

    def key(e: PredictorEntry) -> tuple[int, int, int]:
        return accuracy_key(e, final_away, final_home)

    ranked = sorted(entries, key=lambda e: (key(e), e.user_id))
    place = 0
    for _, group in groupby(ranked, key=key):
        tied = list(group)
        pooled = sum(shares[place:place + len(tied)], Decimal(0))
        if pooled:
            each = pot * pooled / Decimal(len(tied))
            for e in tied:
                points[e.user_id] = each
        place += len(tied)
        if place >= k:
            break
    return points


def jackpot_points(
    entries: Sequence[PredictorEntry], final_away: int, final_home: int
) -> dict[str, Decimal]:
    """Each exact-score entry earns 400 * (N - P); nothing when P == 0 (or P == N)."""
    points = {e.user_id: Decimal(0) for e in entries}
    perfect = [
        e for e in entries
        if e.away_score_pred == final_away and e.home_score_pred == final_home
    ]
    if not perfect:
        return points
    each = JACKPOT_POINTS_PER_ENTRY * Decimal(len(entries) - len(perfect))
    for e in perfect:
        points[e.user_id] = each
    return points


def apply_round_weight(points: Decimal, weight: Decimal) -> Decimal:
    return points * weight


@dataclass
class GameScore:
    """Unweighted point components for one entry in one game."""
    user_id: str
    winner: Decimal
    accuracy: Decimal
    jackpot: Decimal

    @property
    def base(self) -> Decimal:
        return self.winner + self.accuracy + self.jackpot


def score_game(
    entries: Sequence[PredictorEntry], final_away: int, final_home: int
) -> list[GameScore]:
    """All three components per entry, ordered by user_id."""
    winners = winner_points(entries, final_away, final_home)
    accuracy = accuracy_points(entries, final_away, final_home)
    jackpot = jackpot_points(entries, final_away, final_home)
    return [
        GameScore(user_id=uid, winner=winners[uid], accuracy=accuracy[uid], jackpot=jackpot[uid])
        for uid in sorted(winners)
    ]


def build_point_rows(
    game_id: str, scores: Sequence[GameScore], weight: Decimal
) -> list[PredictorPointRow]:
    return [
        PredictorPointRow(
            game_id=game_id,
            user_id=s.user_id,
            base_points=quantize_points(s.base),
            weighted_points=quantize_points(apply_round_weight(s.base, weight)),
        )
        for s in scores
    ]


def weight_for_round(weights: Mapping[int, Decimal], round_number: int) -> Decimal:
    try:
        return weights[round_number]
    except KeyError:
        raise LookupError(f"No round weight configured for round_number {round_number}") from None
