# prioritization/engine/aggregation.py

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from django.utils import timezone

from .cache import AggregateViewCache
from .eligibility import EligibilityTracker
from .staleness import StalenessPolicy, StalenessStatus
from .store import UserRankingStore

logger = logging.getLogger(__name__)

# Score for an item no admissible ballot mentions (bottom of the scale)
UNRANKED_SCORE = 1.0
SCORE_PRECISION = 6


@dataclass(frozen=True)
class RankedItem:
    item_id: str
    rank: int
    score: float
    ballot_count: int


@dataclass(frozen=True)
class ViewItem:
    item_id: str
    aggregate_rank: int
    score: float
    user_rank: Optional[int] = None


@dataclass
class AggregateView:
    workgroup_id: int
    eligibility_version: int
    ranked: List[ViewItem] = field(default_factory=list)
    total_submitters: int = 0
    total_rankers: int = 0
    has_user_ranked: bool = False
    unranked_count: int = 0
    user_rank_became_stale_at: Optional[datetime] = None
    user_rank_updated_at: Optional[datetime] = None
    user_rank_expires_at: Optional[datetime] = None


def positional_scores(ballot: Sequence[str]) -> Dict[str, float]:
    """
    Normalized position of each item in one ballot: 0.0 for the first,
    1.0 for the last. A single-item ballot puts its item at 0.0.
    """
    denominator = max(len(ballot) - 1, 1)
    return {item_id: index / denominator for index, item_id in enumerate(ballot)}


def compute_aggregate_ranking(
    items: Mapping[str, datetime],
    ballots: Sequence[Sequence[str]],
) -> List[RankedItem]:
    """
    Combine ballots into one ordering of `items` (id -> created_at).

    Each item's score is the mean of its normalized positions across the
    ballots that contain it; lower is better. Items outside every ballot
    score UNRANKED_SCORE. Ties go to the item more ballots ranked, then the
    older item, then the smaller id.

    Ids in a ballot that are not in `items` are ignored before positions
    are computed.
    """
    totals: Dict[str, float] = {item_id: 0.0 for item_id in items}
    counts: Dict[str, int] = {item_id: 0 for item_id in items}

    for ballot in ballots:
        effective = [item_id for item_id in ballot if item_id in items]
        for item_id, position in positional_scores(effective).items():
            totals[item_id] += position
            counts[item_id] += 1

    scored = []
    for item_id, created_at in items.items():
        if counts[item_id]:
            score = round(totals[item_id] / counts[item_id], SCORE_PRECISION)
        else:
            score = UNRANKED_SCORE
        scored.append((score, -counts[item_id], created_at, item_id))

    scored.sort()
    return [
        RankedItem(item_id=item_id, rank=rank, score=score, ballot_count=-neg_count)
        for rank, (score, neg_count, _created_at, item_id) in enumerate(scored, start=1)
    ]


class AggregationEngine:
    """Builds the AggregateView for a workgroup from stored rankings."""

    def __init__(
        self,
        tracker: Optional[EligibilityTracker] = None,
        store: Optional[UserRankingStore] = None,
        policy: Optional[StalenessPolicy] = None,
        cache: Optional[AggregateViewCache] = None,
    ):
        self.tracker = tracker or EligibilityTracker()
        self.cache = cache or AggregateViewCache()
        self.store = store or UserRankingStore(tracker=self.tracker, cache=self.cache)
        self.policy = policy or StalenessPolicy(tracker=self.tracker)

    def aggregate(
        self,
        workgroup_id: int,
        requesting_member_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> AggregateView:
        now = now or timezone.now()

        eligibility = self.tracker.snapshot(workgroup_id)
        eligible_ids = eligibility.item_ids
        snapshots = self.store.all(workgroup_id)
        statuses = self.policy.evaluate(snapshots, eligible_ids, now=now)

        admissible = [s for s in snapshots if statuses[s.member_id].is_admissible]
        ranked = self.cache.get_or_set_ranking(
            workgroup_id,
            eligibility.version,
            [(s.member_id, s.submitted_at, s.row_version) for s in admissible],
            lambda: compute_aggregate_ranking(
                eligibility.created_at,
                [s.effective_ids(eligible_ids) for s in admissible],
            ),
        )

        own = next((s for s in snapshots if s.member_id == requesting_member_id), None)
        user_ranks = own.user_ranks(eligible_ids) if own is not None else {}
        status: Optional[StalenessStatus] = statuses.get(requesting_member_id)

        logger.debug(
            f"Aggregated {len(ranked)} item(s) for workgroup {workgroup_id} "
            f"from {len(admissible)}/{len(snapshots)} ballot(s) at v{eligibility.version}"
        )

        return AggregateView(
            workgroup_id=workgroup_id,
            eligibility_version=eligibility.version,
            ranked=[
                ViewItem(
                    item_id=item.item_id,
                    aggregate_rank=item.rank,
                    score=item.score,
                    user_rank=user_ranks.get(item.item_id),
                )
                for item in ranked
            ],
            total_submitters=len(snapshots),
            total_rankers=len(admissible),
            has_user_ranked=own is not None,
            unranked_count=status.unranked_count if status else 0,
            user_rank_became_stale_at=status.stale_since if status else None,
            user_rank_updated_at=own.submitted_at if own is not None else None,
            user_rank_expires_at=status.expires_at if status else None,
        )
