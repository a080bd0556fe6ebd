"""
Fantasy lineup scoring: streaks, multipliers, per-slot points.

A player's points are multiplied by the number of consecutive rounds the user
has kept them in the lineup (any slot), including the current round, capped at 6.
Dropping a player resets the streak; re-adding starts again at x1.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import AbstractSet, Callable, Mapping

from playoff_league.models import (
    ROSTER_SLOTS,
    RosterSpotScore,
    Slot,
    quantize_points,
)

MIN_MULTIPLIER = 1
MAX_MULTIPLIER = 6

# round_number -> player ids present anywhere in one user's lineup that round
RosterHistory = Mapping[int, AbstractSet[str]]


def streak_before(history: RosterHistory, player_id: str, round_number: int) -> int:
    """
    Consecutive rounds the player was rostered, counting back from round_number - 1.
    Stops at the first round where the player is absent or no roster exists.
    """
    streak = 0
    r = round_number - 1
    while r >= 1:
        players = history.get(r)
        if not players or player_id not in players:
            break
        streak += 1
        r -= 1
    return streak


def multiplier_for_streak(streak_including_current: int) -> int:
    return max(MIN_MULTIPLIER, min(MAX_MULTIPLIER, streak_including_current))


def multiplier_from_score(base_points: Decimal, multiplied_points: Decimal) -> int:
    """Recover the multiplier of a settled slot. A zero base reads as x1."""
    if base_points == 0:
        return MIN_MULTIPLIER
    ratio = (multiplied_points / base_points).to_integral_value(rounding=ROUND_HALF_UP)
    return multiplier_for_streak(int(ratio))


def resolve_multiplier(
    history: RosterHistory,
    player_id: str,
    round_number: int,
    settled: RosterSpotScore | None = None,
) -> int:
    """
    Multiplier for a player held in round_number.
    With a settled score row, the stored ratio is authoritative (locked rounds);
    otherwise it is computed from the live roster history.
    Used by both settlement and lineup preview.
    """
    if settled is not None:
        return multiplier_from_score(settled.base_points, settled.multiplied_points)
    return multiplier_for_streak(streak_before(history, player_id, round_number) + 1)


def score_lineup(
    user_id: str,
    round_id: str,
    round_number: int,
    lineup: Mapping[Slot, str | None],
    history: RosterHistory,
    stat_points: Mapping[str, Decimal],
    is_eligible: Callable[[str], bool],
) -> list[RosterSpotScore]:
    """
    One RosterSpotScore per fixed slot, in slot order.
    Empty or ineligible slots score 0; a rostered player without a stat line scores 0.
    """
    scores: list[RosterSpotScore] = []
    for slot in ROSTER_SLOTS:
        player_id = lineup.get(slot)
        base = Decimal(0)
        multiplier = MIN_MULTIPLIER
        if player_id is not None:
            multiplier = resolve_multiplier(history, player_id, round_number)
            if is_eligible(player_id):
                base = stat_points.get(player_id, Decimal(0))
        scores.append(RosterSpotScore(
            user_id=user_id,
            round_id=round_id,
            slot=slot,
            base_points=quantize_points(base),
            multiplied_points=quantize_points(base * multiplier),
        ))
    return scores

