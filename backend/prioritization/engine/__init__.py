# prioritization/engine/__init__.py
"""
Prioritization Engine Package
=============================

Core logic for combining every workgroup member's personal ordering of
open work items into one aggregate priority order.

Modules:
--------
- eligibility: Which work items currently count, and the version counter
- store: Each member's latest ranking snapshot
- staleness: Whether a snapshot still covers the eligible set (grace period)
- aggregation: Positional-average scoring and the AggregateView
- cache: Django-cache memo of the aggregate ordering
- celery_tasks: Cache warming and the periodic staleness sweep

Architecture:
-------------
Writes (stage events, submissions) go through EligibilityTracker and
UserRankingStore under a row lock on the workgroup's EligibilitySet and
invalidate the cache. Reads go through AggregationEngine, which asks the
StalenessPolicy which snapshots are admissible and then scores:

    pos(item, ballot) = index / max(len(ballot) - 1, 1)
    score(item)       = mean pos over ballots containing item, else 1.0

Lower score ranks higher; ties go to more ballots, then older items, then
smaller ids.

Usage:
------
    from prioritization.engine import AggregationEngine

    view = AggregationEngine().aggregate(workgroup_id=1, requesting_member_id=7)
    for item in view.ranked:
        print(item.aggregate_rank, item.item_id, item.user_rank)
"""

from .aggregation import (
    UNRANKED_SCORE,
    AggregateView,
    AggregationEngine,
    RankedItem,
    ViewItem,
    compute_aggregate_ranking,
    positional_scores,
)
from .cache import AggregateViewCache
from .celery_tasks import sweep_ranking_staleness, warm_aggregate_cache
from .eligibility import (
    ELIGIBLE_STAGES,
    KNOWN_STAGES,
    EligibilitySnapshot,
    EligibilityTracker,
)
from .staleness import StalenessPolicy, StalenessStatus
from .store import UserRankingStore

__all__ = [
    # Core classes
    "AggregationEngine",
    "EligibilityTracker",
    "UserRankingStore",
    "StalenessPolicy",
    "AggregateViewCache",
    # Value types
    "AggregateView",
    "EligibilitySnapshot",
    "RankedItem",
    "StalenessStatus",
    "ViewItem",
    # Functions
    "compute_aggregate_ranking",
    "positional_scores",
    "sweep_ranking_staleness",
    "warm_aggregate_cache",
    # Constants
    "ELIGIBLE_STAGES",
    "KNOWN_STAGES",
    "UNRANKED_SCORE",
]
