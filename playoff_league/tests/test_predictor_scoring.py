"""
Tests for predictor scoring: winner points, accuracy pot, jackpot, round weight.
"""
from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from playoff_league.models import PredictorEntry
from playoff_league.predictor_scoring import (
    ACCURACY_SPLITS,
    accuracy_key,
    accuracy_points,
    build_point_rows,
    jackpot_points,
    score_game,
    split_table,
    weight_for_round,
    winner_points,
)

TOLERANCE = Decimal("0.0001")


def _entries(*preds: tuple[int, int]) -> list[PredictorEntry]:
    return [
        PredictorEntry(game_id="g1", user_id=f"u{i}", away_score_pred=a, home_score_pred=h)
        for i, (a, h) in enumerate(preds, start=1)
    ]


# Final 24-17 (away win). u1, u2 pick the away side; u6 predicts a tie.
SEVEN = _entries((24, 20), (27, 14), (17, 21), (10, 20), (14, 28), (20, 20), (3, 30))


class TestWinnerPoints:
    def test_minority_correct_scenario(self):
        """N=7, C=2: each correct entry gets (7-2)*100/2 = 250."""
        pts = winner_points(SEVEN, 24, 17)
        assert pts["u1"] == pts["u2"] == Decimal(250)
        assert all(pts[u] == 0 for u in ("u3", "u4", "u5", "u6", "u7"))
        assert sum(pts.values()) == (7 - 2) * 100

    def test_majority_correct_gets_flat_100(self):
        entries = _entries((21, 10), (30, 3), (14, 17), (28, 27))
        pts = winner_points(entries, 24, 17)
        assert [pts[u] for u in ("u1", "u2", "u3", "u4")] == [100, 100, 0, 100]
        assert sum(pts.values()) == 3 * 100

    def test_exactly_half_is_majority(self):
        pts = winner_points(_entries((21, 10), (10, 21)), 24, 17)
        assert pts["u1"] == 100

    def test_nobody_correct(self):
        pts = winner_points(_entries((10, 21), (3, 7)), 24, 17)
        assert all(v == 0 for v in pts.values())

    def test_predicted_tie_never_correct(self):
        pts = winner_points(_entries((17, 17), (20, 21)), 17, 17)
        assert all(v == 0 for v in pts.values())

    def test_non_integer_share_not_rounded(self):
        entries = _entries((21, 10), (28, 3), (10, 21), (3, 7), (7, 14))
        pts = winner_points(entries, 24, 17)
        assert pts["u1"] == Decimal(300) / Decimal(2)
        entries = _entries((21, 10), (28, 3), (17, 7), (3, 7), (7, 14), (0, 3), (6, 9))
        pts = winner_points(entries, 24, 17)
        assert pts["u1"] == Decimal(400) / Decimal(3)


class TestAccuracyKey:
    def test_components(self):
        entry = PredictorEntry("g1", "u1", 20, 20)
        assert accuracy_key(entry, 24, 17) == (7, 7, 1)


class TestSplitTable:
    @pytest.mark.parametrize("k", sorted(ACCURACY_SPLITS))
    def test_published_tables_sum_to_one(self, k):
        assert sum(split_table(k)) == 1

    def test_linear_extension_matches_k4(self):
        denominator = Decimal(10)
        assert [Decimal(4 - i) / denominator for i in range(4)] == list(split_table(4))

    @pytest.mark.parametrize("k", [5, 6, 7, 12])
    def test_extension_decreasing_and_complete(self, k):
        shares = split_table(k)
        assert len(shares) == k
        assert all(a > b for a, b in zip(shares, shares[1:]))
        assert abs(sum(shares) - 1) < TOLERANCE

    def test_no_places(self):
        assert split_table(0) == ()


class TestAccuracyPot:
    def test_seven_entry_scenario(self):
        """K=3, pot=400: 45/33/22 -> 180/132/88."""
        pts = accuracy_points(SEVEN, 24, 17)
        assert pts["u1"] == Decimal(180)
        assert pts["u2"] == Decimal(132)
        assert pts["u6"] == Decimal(88)
        assert sum(pts.values()) == 400

    def test_single_entry_has_no_pot(self):
        assert accuracy_points(_entries((24, 17)), 24, 17) == {"u1": Decimal(0)}

    def test_tie_pools_shares(self):
        """N=4, K=2, pot=200; two entries tied for first split 60%+40%."""
        entries = _entries((21, 14), (21, 14), (10, 3), (0, 35))
        pts = accuracy_points(entries, 24, 17)
        assert pts["u1"] == pts["u2"] == Decimal(100)
        assert pts["u3"] == pts["u4"] == 0

    def test_tie_shifts_following_places(self):
        """N=6, K=3, pot=300; tie for 2nd/3rd pools 33%+22%."""
        entries = _entries((24, 17), (21, 14), (21, 14), (10, 3), (0, 35), (3, 0))
        pts = accuracy_points(entries, 24, 17)
        assert pts["u1"] == Decimal(135)
        assert pts["u2"] == pts["u3"] == Decimal("82.5")
        assert sum(pts.values()) == 300

    def test_tie_across_cutoff_takes_remaining_shares(self):
        entries = _entries((24, 17), (21, 14), (21, 14), (0, 35))
        pts = accuracy_points(entries, 24, 17)
        assert pts["u1"] == Decimal(120)
        assert pts["u2"] == pts["u3"] == Decimal(40)
        assert sum(pts.values()) == 200

    def test_spread_breaks_total_error_tie(self):
        # both total error 6; u1 keeps the spread, u2 does not
        entries = _entries((27, 20), (27, 14))
        pts = accuracy_points(entries, 24, 17)
        assert pts["u1"] == Decimal(100)
        assert pts["u2"] == 0

    def test_large_league_sums_to_pot(self):
        preds = [(24 + i, 17) for i in range(11)]
        entries = _entries(*preds)
        pts = accuracy_points(entries, 24, 17)
        assert abs(sum(pts.values()) - (11 - 5) * 100) < TOLERANCE
        ranked = [pts[f"u{i}"] for i in range(1, 6)]
        assert ranked == sorted(ranked, reverse=True)


class TestJackpot:
    def test_single_perfect_entry(self):
        """N=4, P=1 -> 1200."""
        entries = _entries((24, 17), (21, 14), (10, 3), (0, 35))
        pts = jackpot_points(entries, 24, 17)
        assert pts["u1"] == Decimal(1200)
        assert sum(pts.values()) == 1 * 400 * 3

    def test_everyone_perfect_earns_nothing(self):
        pts = jackpot_points(_entries((24, 17), (24, 17)), 24, 17)
        assert all(v == 0 for v in pts.values())

    def test_no_perfect_entries(self):
        pts = jackpot_points(_entries((21, 17), (24, 10)), 24, 17)
        assert all(v == 0 for v in pts.values())


class TestScoreGame:
    def test_components_stack(self):
        scores = {s.user_id: s for s in score_game(SEVEN, 24, 17)}
        assert scores["u1"].base == Decimal(430)
        assert scores["u6"].base == Decimal(88)
        assert scores["u7"].base == 0

    def test_ordered_by_user(self):
        assert [s.user_id for s in score_game(SEVEN, 24, 17)] == sorted(e.user_id for e in SEVEN)

    def test_round_weight_applied(self):
        scores = score_game(SEVEN, 24, 17)
        rows = {r.user_id: r for r in build_point_rows("g1", scores, Decimal("1.4"))}
        assert rows["u1"].base_points == Decimal(430)
        assert rows["u1"].weighted_points == Decimal(602)

    def test_weighted_rows_quantized(self):
        entries = _entries((21, 10), (28, 3), (17, 7), (3, 7), (7, 14), (0, 3), (6, 9))
        rows = {r.user_id: r for r in build_point_rows("g1", score_game(entries, 24, 17), Decimal("1.8"))}
        assert rows["u1"].weighted_points.as_tuple().exponent == -4

    def test_missing_weight(self):
        with pytest.raises(LookupError):
            weight_for_round({1: Decimal(1)}, 5)
