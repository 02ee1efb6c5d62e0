# prioritization/services.py

import logging
from datetime import datetime
from functools import wraps
from typing import Optional, Sequence

from django.db import DatabaseError

from workgroups.models import Workgroup

from .engine import (
    AggregateView,
    AggregateViewCache,
    AggregationEngine,
    EligibilityTracker,
    StalenessPolicy,
    StalenessStatus,
    UserRankingStore,
)
from .exceptions import NotFound, StorageFailure

logger = logging.getLogger(__name__)


def _wrap_storage_errors(method):
    """Re-raise database errors as StorageFailure, keeping the original as __cause__."""

    @wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except DatabaseError as e:
            logger.error(f"Storage failure in {method.__name__}: {str(e)}")
            raise StorageFailure(f"Prioritization storage is unavailable: {e}") from e

    return wrapper


class PrioritizationService:
    """
    Entry point used by views, signal handlers and background jobs.

    Responsibility:
    - Check that the workgroup exists and the caller belongs to it.
    - Delegate to the engine components.
    - Present database failures as StorageFailure.
    """

    def __init__(
        self,
        tracker: Optional[EligibilityTracker] = None,
        cache: Optional[AggregateViewCache] = None,
    ):
        self.tracker = tracker or EligibilityTracker()
        self.cache = cache or AggregateViewCache()
        self.store = UserRankingStore(tracker=self.tracker, cache=self.cache)
        self.policy = StalenessPolicy(tracker=self.tracker)
        self.engine = AggregationEngine(
            tracker=self.tracker, store=self.store, policy=self.policy, cache=self.cache
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @_wrap_storage_errors
    def get_prioritization_view(
        self, workgroup_id: int, member_id: int, now: Optional[datetime] = None
    ) -> AggregateView:
        self._check_member(workgroup_id, member_id)
        return self.engine.aggregate(workgroup_id, requesting_member_id=member_id, now=now)

    @_wrap_storage_errors
    def get_ranking_status(
        self, workgroup_id: int, member_id: int, now: Optional[datetime] = None
    ) -> StalenessStatus:
        self._check_member(workgroup_id, member_id)
        return self.policy.status(member_id, workgroup_id, now=now)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @_wrap_storage_errors
    def submit_ranking(
        self,
        workgroup_id: int,
        member_id: int,
        ordered_ids: Sequence[str],
        require_complete: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> StalenessStatus:
        """
        Store the member's ordering and return their status afterwards.
        `require_complete=None` follows PRIORITIZATION_REQUIRE_COMPLETE_RANKING.
        """
        self._check_member(workgroup_id, member_id)
        self.store.submit(
            member_id, workgroup_id, ordered_ids, require_complete=require_complete, now=now
        )
        return self.policy.status(member_id, workgroup_id, now=now)

    @_wrap_storage_errors
    def notify_eligibility_change(
        self,
        workgroup_id: int,
        item_id: str,
        new_stage: str,
        created_at: Optional[datetime] = None,
    ) -> bool:
        self._check_workgroup(workgroup_id)
        changed = self.tracker.on_stage_changed(workgroup_id, item_id, new_stage, created_at=created_at)
        if changed:
            self.cache.invalidate(workgroup_id)
        return changed

    @_wrap_storage_errors
    def notify_item_removed(self, workgroup_id: int, item_id: str) -> bool:
        self._check_workgroup(workgroup_id)
        changed = self.tracker.on_item_removed(workgroup_id, item_id)
        if changed:
            self.cache.invalidate(workgroup_id)
        return changed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_workgroup(self, workgroup_id: int) -> Workgroup:
        workgroup = Workgroup.objects.filter(pk=workgroup_id).first()
        if workgroup is None:
            raise NotFound(f"Workgroup {workgroup_id} does not exist.")
        return workgroup

    def _check_member(self, workgroup_id: int, member_id: int) -> None:
        workgroup = self._check_workgroup(workgroup_id)
        if not workgroup.has_member(member_id):
            raise NotFound(f"Member {member_id} does not belong to workgroup {workgroup_id}.")
