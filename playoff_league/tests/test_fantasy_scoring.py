"""
Tests for fantasy lineup scoring: streaks, multipliers, per-slot points.
"""
from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from playoff_league.fantasy_scoring import (
    MAX_MULTIPLIER,
    MIN_MULTIPLIER,
    multiplier_for_streak,
    multiplier_from_score,
    resolve_multiplier,
    score_lineup,
    streak_before,
)
from playoff_league.models import ROSTER_SLOTS, RosterSpotScore, Slot


def _always_eligible(player_id: str) -> bool:
    return True


class TestStreak:
    def test_round_one_has_no_prior_streak(self):
        assert streak_before({1: {"p"}}, "p", 1) == 0

    def test_counts_consecutive_prior_rounds(self):
        history = {1: {"p"}, 2: {"p"}, 3: {"p"}}
        assert streak_before(history, "p", 4) == 3

    def test_stops_at_first_gap(self):
        history = {1: {"p"}, 2: set(), 3: {"p"}}
        assert streak_before(history, "p", 4) == 1

    def test_missing_roster_breaks_streak(self):
        history = {1: {"p"}, 3: {"p"}}
        assert streak_before(history, "p", 4) == 1

    def test_dropped_and_readded_starts_over(self):
        """Held rounds 1-3, dropped in 4 and 5, re-added in 6: x1, not x4."""
        history = {1: {"p"}, 2: {"p"}, 3: {"p"}, 4: set(), 5: set(), 6: {"p"}}
        assert streak_before(history, "p", 6) == 0
        assert resolve_multiplier(history, "p", 6) == 1

    def test_slot_change_keeps_streak(self):
        """Presence is per lineup, not per slot."""
        history = {1: {"a"}, 2: {"a"}, 3: {"a"}}
        assert resolve_multiplier(history, "a", 3) == 3


class TestMultiplier:
    def test_fresh_player_is_x1(self):
        assert multiplier_for_streak(1) == MIN_MULTIPLIER

    def test_clamped_to_six(self):
        history = {r: {"p"} for r in range(1, 10)}
        assert resolve_multiplier(history, "p", 9) == MAX_MULTIPLIER == 6

    def test_never_below_one(self):
        assert multiplier_for_streak(0) == 1
        assert multiplier_for_streak(-3) == 1

    def test_qb_swap_new_player_is_x1(self):
        history = {1: {"qb-a"}, 2: {"qb-a"}, 3: {"qb-b"}}
        assert resolve_multiplier(history, "qb-b", 3) == 1
        assert resolve_multiplier(history, "qb-a", 3) == 3


class TestMultiplierFromScore:
    def test_exact_ratio(self):
        assert multiplier_from_score(Decimal("10"), Decimal("30")) == 3

    def test_zero_base_reads_as_one(self):
        assert multiplier_from_score(Decimal("0"), Decimal("0")) == 1

    def test_rounds_to_nearest(self):
        assert multiplier_from_score(Decimal("3.3333"), Decimal("9.9999")) == 3
        assert multiplier_from_score(Decimal("7"), Decimal("17.6")) == 3

    def test_ratio_clamped(self):
        assert multiplier_from_score(Decimal("1"), Decimal("10")) == 6

    def test_settled_row_overrides_history(self):
        settled = RosterSpotScore("u1", "r3", Slot.QB, Decimal("12.5"), Decimal("50"))
        assert resolve_multiplier({}, "p", 3, settled=settled) == 4


class TestScoreLineup:
    def test_one_row_per_slot_in_order(self):
        scores = score_lineup("u1", "r1", 1, {}, {}, {}, _always_eligible)
        assert [s.slot for s in scores] == list(ROSTER_SLOTS)
        assert all(s.base_points == 0 and s.multiplied_points == 0 for s in scores)

    def test_multiplied_points(self):
        lineup = {Slot.QB: "qb", Slot.K: "k"}
        history = {1: {"qb"}, 2: {"qb", "k"}}
        stats = {"qb": Decimal("21.4"), "k": Decimal("9")}
        scores = {s.slot: s for s in score_lineup("u1", "r2", 2, lineup, history, stats, _always_eligible)}
        assert scores[Slot.QB].base_points == Decimal("21.4")
        assert scores[Slot.QB].multiplied_points == Decimal("42.8")
        assert scores[Slot.K].multiplied_points == Decimal("9")

    def test_missing_stat_line_scores_zero(self):
        scores = score_lineup("u1", "r1", 1, {Slot.TE: "te"}, {1: {"te"}}, {}, _always_eligible)
        assert scores[ROSTER_SLOTS.index(Slot.TE)].base_points == 0

    def test_ineligible_player_scores_zero(self):
        lineup = {Slot.WR1: "wr"}
        stats = {"wr": Decimal("15")}
        scores = score_lineup("u1", "r2", 2, lineup, {2: {"wr"}}, stats, lambda pid: False)
        wr = scores[ROSTER_SLOTS.index(Slot.WR1)]
        assert wr.base_points == 0
        assert wr.multiplied_points == 0
