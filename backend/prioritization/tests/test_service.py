# prioritization/tests/test_service.py
"""
Prioritization Service Integration Tests
========================================

Exercises the façade end to end against the database: the aggregate view,
per-member stats, membership checks, error translation and caching.

Test Categories:
----------------
1. Aggregate view contents
2. Staleness and grace period inside aggregation
3. Membership / NotFound
4. Storage failure translation
5. Cache behaviour
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from django.core.cache import cache
from django.db import OperationalError
from django.test import TestCase, override_settings

from prioritization.engine import aggregation
from prioritization.engine.cache import AggregateViewCache
from prioritization.exceptions import NotFound, StorageFailure
from prioritization.tests.helpers import (
    T0,
    PrioritizationFixtureMixin,
    days,
    make_member,
    make_workgroup,
)


def _order(view) -> list:
    return [item.item_id for item in view.ranked]


# ===========================================================================
# AGGREGATE VIEW
# ===========================================================================


class TestPrioritizationView(PrioritizationFixtureMixin, TestCase):

    def test_zero_ballots_still_rank_every_item(self) -> None:
        view = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        self.assertEqual(_order(view), ["A", "B", "C"])
        self.assertEqual([item.aggregate_rank for item in view.ranked], [1, 2, 3])
        self.assertTrue(all(item.score == 1.0 for item in view.ranked))
        self.assertEqual(view.total_rankers, 0)
        self.assertEqual(view.total_submitters, 0)
        self.assertFalse(view.has_user_ranked)
        self.assertEqual(view.unranked_count, 0)
        self.assertIsNone(view.user_rank_became_stale_at)
        self.assertEqual(view.eligibility_version, 3)

    def test_three_member_example(self) -> None:
        self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["A", "B", "C"], now=T0)
        self.service.submit_ranking(self.workgroup.pk, self.bob.pk, ["C", "A"], now=T0)

        view = self.service.get_prioritization_view(self.workgroup.pk, self.bob.pk, now=T0)

        self.assertEqual(_order(view), ["A", "C", "B"])
        self.assertEqual([item.score for item in view.ranked], [0.5, 0.5, 0.5])
        self.assertEqual({i.item_id: i.user_rank for i in view.ranked}, {"A": 2, "C": 1, "B": None})
        self.assertTrue(view.has_user_ranked)
        self.assertEqual(view.total_rankers, 2)
        self.assertEqual(view.unranked_count, 1)
        self.assertEqual(view.user_rank_became_stale_at, T0)
        self.assertEqual(view.user_rank_updated_at, T0)
        self.assertEqual(view.user_rank_expires_at, T0 + days(7))

    def test_view_is_deterministic(self) -> None:
        self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["B", "C"], now=T0)

        first = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)
        cache.clear()
        second = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        self.assertEqual(first.ranked, second.ranked)

    def test_resolved_item_disappears_from_view(self) -> None:
        self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["C", "B", "A"], now=T0)

        self.service.notify_eligibility_change(self.workgroup.pk, "B", "resolved")
        view = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        self.assertEqual(_order(view), ["C", "A"])
        self.assertEqual({i.item_id: i.user_rank for i in view.ranked}, {"C": 1, "A": 2})
        self.assertFalse(view.unranked_count)

    def test_removed_item_disappears_from_view(self) -> None:
        self.assertTrue(self.service.notify_item_removed(self.workgroup.pk, "A"))

        view = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        self.assertEqual(_order(view), ["B", "C"])

    def test_submit_returns_status(self) -> None:
        status = self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["A", "B"], now=T0)

        self.assertTrue(status.has_ever_ranked)
        self.assertTrue(status.is_stale)
        self.assertEqual(status.missing_ids, ["C"])

    def test_get_ranking_status(self) -> None:
        self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["A", "B", "C"], now=T0)

        status = self.service.get_ranking_status(self.workgroup.pk, self.alice.pk, now=T0)

        self.assertFalse(status.is_stale)
        self.assertEqual(status.submitted_at, T0)


@override_settings(PRIORITIZATION_GRACE_PERIOD_DAYS=3)
class TestGracePeriodInAggregation(PrioritizationFixtureMixin, TestCase):

    def setUp(self) -> None:
        super().setUp()
        self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["C", "B", "A"], now=T0)
        self.service.submit_ranking(self.workgroup.pk, self.bob.pk, ["A", "B", "C"], now=T0)
        # Alice's ranking goes stale on day 0
        self.service.notify_eligibility_change(self.workgroup.pk, "D", "open")
        self.service.submit_ranking(self.workgroup.pk, self.bob.pk, ["A", "B", "C", "D"], now=T0)
        self.service.get_ranking_status(self.workgroup.pk, self.alice.pk, now=T0)

    def test_stale_ballot_counts_within_grace(self) -> None:
        view = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0 + days(3))

        self.assertEqual(view.total_rankers, 2)
        self.assertEqual(view.user_rank_became_stale_at, T0)

    def test_expired_ballot_is_excluded_but_own_ranks_remain(self) -> None:
        view = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0 + days(4))

        self.assertEqual(view.total_rankers, 1)
        self.assertEqual(view.total_submitters, 2)
        self.assertEqual(_order(view), ["A", "B", "C", "D"])
        self.assertEqual(
            {i.item_id: i.user_rank for i in view.ranked},
            {"C": 1, "B": 2, "A": 3, "D": None},
        )
        self.assertEqual(view.unranked_count, 1)

    def test_resubmission_restores_admissibility(self) -> None:
        self.service.submit_ranking(
            self.workgroup.pk, self.alice.pk, ["D", "C", "B", "A"], now=T0 + days(5)
        )

        view = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0 + days(5))

        self.assertEqual(view.total_rankers, 2)
        self.assertIsNone(view.user_rank_became_stale_at)


# ===========================================================================
# MEMBERSHIP AND ERRORS
# ===========================================================================


class TestServiceErrors(PrioritizationFixtureMixin, TestCase):

    def test_unknown_workgroup(self) -> None:
        with self.assertRaises(NotFound):
            self.service.get_prioritization_view(999999, self.alice.pk)

        with self.assertRaises(NotFound):
            self.service.notify_eligibility_change(999999, "A", "open")

    def test_non_member(self) -> None:
        outsider = make_member("mallory@example.com")

        with self.assertRaises(NotFound):
            self.service.submit_ranking(self.workgroup.pk, outsider.pk, ["A"])

        with self.assertRaises(NotFound):
            self.service.get_ranking_status(self.workgroup.pk, outsider.pk)

    def test_membership_is_per_workgroup(self) -> None:
        other = make_workgroup("other-team", members=[self.bob])
        self.service.notify_eligibility_change(other.pk, "X", "open")

        with self.assertRaises(NotFound):
            self.service.get_prioritization_view(other.pk, self.alice.pk)

        view = self.service.get_prioritization_view(other.pk, self.bob.pk)
        self.assertEqual(_order(view), ["X"])

    def test_database_errors_become_storage_failure(self) -> None:
        with patch.object(
            self.service.store, "submit", side_effect=OperationalError("database is locked")
        ):
            with self.assertRaises(StorageFailure) as ctx:
                self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["A"])

        self.assertIsInstance(ctx.exception.__cause__, OperationalError)


# ===========================================================================
# CACHE
# ===========================================================================


class TestAggregateCaching(PrioritizationFixtureMixin, TestCase):

    def test_repeat_read_is_served_from_cache(self) -> None:
        self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["C", "A", "B"], now=T0)
        self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        with patch.object(
            aggregation, "compute_aggregate_ranking", wraps=aggregation.compute_aggregate_ranking
        ) as compute:
            view = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        compute.assert_not_called()
        self.assertEqual(_order(view), ["C", "A", "B"])

    def test_submission_changes_the_cached_order(self) -> None:
        self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["C", "A", "B"], now=T0)
        self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["B", "A", "C"], now=T0)
        view = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        self.assertEqual(_order(view), ["B", "A", "C"])

    def test_eligibility_change_is_reflected(self) -> None:
        self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        self.service.notify_eligibility_change(self.workgroup.pk, "D", "in_progress")
        view = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        self.assertIn("D", _order(view))
        self.assertEqual(view.eligibility_version, 4)

    def test_cache_backend_failure_falls_back_to_direct_computation(self) -> None:
        self.service.submit_ranking(self.workgroup.pk, self.alice.pk, ["C", "B", "A"], now=T0)

        broken_cache = MagicMock()
        broken_cache.get.side_effect = ConnectionError("redis down")
        broken_cache.set.side_effect = ConnectionError("redis down")
        with patch("prioritization.engine.cache.caches", {"default": broken_cache}):
            view = self.service.get_prioritization_view(self.workgroup.pk, self.alice.pk, now=T0)

        self.assertEqual(_order(view), ["C", "B", "A"])
        broken_cache.get.assert_called()

    def test_configured_cache_alias_is_used(self) -> None:
        default_cache = MagicMock()
        ranking_cache = MagicMock()
        ranking_cache.get.return_value = None
        view_cache = AggregateViewCache(cache_alias="rankings")

        with patch(
            "prioritization.engine.cache.caches",
            {"default": default_cache, "rankings": ranking_cache},
        ):
            result = view_cache.get_or_set_ranking(self.workgroup.pk, 1, [], lambda: ["A"])
            view_cache.invalidate(self.workgroup.pk)

        self.assertEqual(result, ["A"])
        ranking_cache.set.assert_called()
        ranking_cache.incr.assert_called_once()
        default_cache.get.assert_not_called()
        default_cache.set.assert_not_called()
        default_cache.incr.assert_not_called()
