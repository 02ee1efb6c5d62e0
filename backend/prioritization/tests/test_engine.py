# prioritization/tests/test_engine.py
"""
Aggregation Math Unit Tests
===========================

Tests for the pure scoring functions behind the aggregate order.

This module tests:
1. Normalized ballot positions
2. Mean-position scoring with partial ballots
3. Tie-breaking (ballot count, creation time, id)
4. Determinism and no-opinion neutrality

Nothing here touches the database.
"""

from __future__ import annotations

import datetime

from django.test import SimpleTestCase

from prioritization.engine.aggregation import (
    UNRANKED_SCORE,
    compute_aggregate_ranking,
    positional_scores,
)


def _items(*ids: str) -> dict:
    """Item ids created one minute apart, in argument order."""
    base = datetime.datetime(2024, 1, 15, 12, 0, 0, tzinfo=datetime.timezone.utc)
    return {item_id: base + datetime.timedelta(minutes=i) for i, item_id in enumerate(ids)}


def _order(ranking) -> list:
    return [item.item_id for item in ranking]


# ===========================================================================
# POSITIONAL SCORE TESTS
# ===========================================================================


class TestPositionalScores(SimpleTestCase):

    def test_first_is_zero_and_last_is_one(self) -> None:
        scores = positional_scores(["a", "b", "c"])

        self.assertEqual(scores, {"a": 0.0, "b": 0.5, "c": 1.0})

    def test_single_item_ballot_contributes_zero(self) -> None:
        self.assertEqual(positional_scores(["only"]), {"only": 0.0})

    def test_two_item_ballot(self) -> None:
        self.assertEqual(positional_scores(["x", "y"]), {"x": 0.0, "y": 1.0})

    def test_empty_ballot(self) -> None:
        self.assertEqual(positional_scores([]), {})


# ===========================================================================
# AGGREGATE RANKING TESTS
# ===========================================================================


class TestComputeAggregateRanking(SimpleTestCase):

    def test_three_way_tie_prefers_items_with_more_ballots(self) -> None:
        """
        Member 1 ranks [A, B, C], member 2 ranks only [C, A].
        Every item averages 0.5; A and C have two ballots each, B only one.
        """
        ranking = compute_aggregate_ranking(_items("A", "B", "C"), [["A", "B", "C"], ["C", "A"]])

        # More contributing ballots win before creation order, so B comes last
        self.assertEqual(_order(ranking), ["A", "C", "B"])
        self.assertEqual([item.score for item in ranking], [0.5, 0.5, 0.5])
        self.assertEqual([item.ballot_count for item in ranking], [2, 2, 1])
        self.assertEqual([item.rank for item in ranking], [1, 2, 3])

    def test_no_ballots_orders_by_creation_time(self) -> None:
        ranking = compute_aggregate_ranking(_items("t3", "t1", "t2"), [])

        self.assertEqual(_order(ranking), ["t3", "t1", "t2"])
        self.assertTrue(all(item.score == UNRANKED_SCORE for item in ranking))
        self.assertTrue(all(item.ballot_count == 0 for item in ranking))

    def test_no_items_gives_empty_ranking(self) -> None:
        self.assertEqual(compute_aggregate_ranking({}, [["A"]]), [])

    def test_lexicographic_id_breaks_remaining_ties(self) -> None:
        same_time = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        items = {"b": same_time, "a": same_time, "c": same_time}

        ranking = compute_aggregate_ranking(items, [])

        self.assertEqual(_order(ranking), ["a", "b", "c"])

    def test_lower_mean_position_ranks_higher(self) -> None:
        ballots = [["B", "A", "C"], ["B", "C", "A"], ["A", "B", "C"]]

        ranking = compute_aggregate_ranking(_items("A", "B", "C"), ballots)

        # B: (0 + 0 + 0.5) / 3, A: (0.5 + 1 + 0) / 3, C: (1 + 0.5 + 1) / 3
        self.assertEqual(_order(ranking), ["B", "A", "C"])
        self.assertAlmostEqual(ranking[0].score, 1 / 6, places=6)

    def test_ranks_are_contiguous(self) -> None:
        ranking = compute_aggregate_ranking(_items("A", "B", "C", "D"), [["D", "A"]])

        self.assertEqual([item.rank for item in ranking], [1, 2, 3, 4])

    def test_unranked_items_sort_after_ranked_last_place(self) -> None:
        """An item last on a ballot (1.0) still beats an unranked item via ballot count."""
        ranking = compute_aggregate_ranking(_items("Z", "A", "B"), [["A", "B"]])

        self.assertEqual(_order(ranking), ["A", "B", "Z"])
        self.assertEqual(ranking[1].score, 1.0)
        self.assertEqual(ranking[2].score, UNRANKED_SCORE)

    def test_ids_outside_items_are_ignored(self) -> None:
        """Ballot positions are computed after dropping ids that are not eligible."""
        ranking = compute_aggregate_ranking(_items("A", "B"), [["gone", "B", "A"]])

        self.assertEqual(_order(ranking), ["B", "A"])
        self.assertEqual([item.score for item in ranking], [0.0, 1.0])

    def test_float_noise_does_not_break_ties(self) -> None:
        # A sums 0 + 1 + 1/3 and B sums 2/3 + 0 + 2/3
        ballots = [["A", "x1", "B", "x2"], ["B", "x1", "x2", "A"], ["x1", "A", "B", "x2"]]
        items = _items("A", "B", "x1", "x2")

        ranking = compute_aggregate_ranking(items, ballots)
        scores = {item.item_id: item.score for item in ranking}

        self.assertEqual(scores["A"], round((0 + 1 + 1 / 3) / 3, 6))
        self.assertEqual(scores["B"], round((2 / 3 + 0 + 2 / 3) / 3, 6))
        self.assertEqual(scores["A"], scores["B"])
        # Same score and ballot count: A was created first
        self.assertLess(_order(ranking).index("A"), _order(ranking).index("B"))

    # -----------------------------------------------------------------------
    # Properties
    # -----------------------------------------------------------------------

    def test_deterministic(self) -> None:
        items = _items("A", "B", "C", "D")
        ballots = [["D", "C"], ["A", "B", "C", "D"], ["B"]]

        first = compute_aggregate_ranking(items, ballots)
        second = compute_aggregate_ranking(dict(reversed(list(items.items()))), list(ballots))

        self.assertEqual(first, second)

    def test_absent_item_score_is_unaffected_by_other_ballots(self) -> None:
        items = _items("A", "B", "C")
        before = compute_aggregate_ranking(items, [["A", "B", "C"]])
        after = compute_aggregate_ranking(items, [["A", "B", "C"], ["C", "B"]])

        score_a_before = next(item.score for item in before if item.item_id == "A")
        score_a_after = next(item.score for item in after if item.item_id == "A")
        self.assertEqual(score_a_before, score_a_after)
