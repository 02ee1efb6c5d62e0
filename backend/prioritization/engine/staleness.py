# prioritization/engine/staleness.py
"""
Staleness Policy
================

A stored ranking is *stale* when it no longer covers every eligible item.
The first time that is observed, `stale_since` is persisted; the ranking
keeps counting toward the aggregate for a grace period after that moment
and is *expired* once the grace period has run out.

Members who never submitted are neither stale nor expired: they simply have
no opinion.

`stale_since` is written with a conditional update on the snapshot's
`row_version`, so a resubmission that lands concurrently always wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List, Optional

from django.conf import settings
from django.utils import timezone

from ..models import RankingSnapshot
from .eligibility import EligibilityTracker

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_DAYS = 7


@dataclass
class StalenessStatus:
    member_id: int
    workgroup_id: int
    has_ever_ranked: bool
    missing_ids: List[str] = field(default_factory=list)
    is_stale: bool = False
    is_expired: bool = False
    stale_since: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    @property
    def is_admissible(self) -> bool:
        """Whether this member's ranking currently counts toward the aggregate."""
        return self.has_ever_ranked and not self.is_expired

    @property
    def unranked_count(self) -> int:
        return len(self.missing_ids)


class StalenessPolicy:
    """Derives StalenessStatus from a snapshot and the eligible set."""

    def __init__(self, tracker: Optional[EligibilityTracker] = None):
        self.tracker = tracker or EligibilityTracker()

    @staticmethod
    def grace_period() -> timedelta:
        days = getattr(settings, "PRIORITIZATION_GRACE_PERIOD_DAYS", DEFAULT_GRACE_PERIOD_DAYS)
        return timedelta(days=float(days))

    def status(self, member_id: int, workgroup_id: int, now: Optional[datetime] = None) -> StalenessStatus:
        snapshot = RankingSnapshot.objects.filter(member_id=member_id, workgroup_id=workgroup_id).first()
        if snapshot is None:
            return StalenessStatus(member_id=member_id, workgroup_id=workgroup_id, has_ever_ranked=False)

        eligible = self.tracker.current_eligible_ids(workgroup_id)
        return self.evaluate([snapshot], eligible, now=now)[member_id]

    def evaluate(
        self,
        snapshots: Iterable[RankingSnapshot],
        eligible_ids: Iterable[str],
        now: Optional[datetime] = None,
    ) -> Dict[int, StalenessStatus]:
        """
        Evaluate every snapshot of a workgroup in one pass.

        Side effects: records `stale_since` on snapshots first observed
        incomplete, and clears it (with the reminder bookkeeping) on
        snapshots that are complete again. The passed instances are updated
        in place when the write succeeds.

        Returns:
            member_id -> StalenessStatus
        """
        now = now or timezone.now()
        eligible: FrozenSet[str] = frozenset(eligible_ids)
        grace = self.grace_period()
        results: Dict[int, StalenessStatus] = {}

        for snapshot in snapshots:
            missing = sorted(eligible - set(snapshot.ordered_ids))

            if missing and snapshot.stale_since is None:
                self._mark_stale(snapshot, now)
            elif not missing and snapshot.stale_since is not None:
                self._clear_stale(snapshot)

            stale_since = snapshot.stale_since if missing else None
            expires_at = stale_since + grace if stale_since else None

            results[snapshot.member_id] = StalenessStatus(
                member_id=snapshot.member_id,
                workgroup_id=snapshot.workgroup_id,
                has_ever_ranked=True,
                missing_ids=missing,
                is_stale=bool(missing),
                is_expired=bool(expires_at and now > expires_at),
                stale_since=stale_since,
                expires_at=expires_at,
                submitted_at=snapshot.submitted_at,
            )

        return results

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _mark_stale(self, snapshot: RankingSnapshot, now: datetime) -> None:
        updated = RankingSnapshot.objects.filter(
            pk=snapshot.pk, row_version=snapshot.row_version, stale_since__isnull=True
        ).update(stale_since=now)

        if updated:
            snapshot.stale_since = now
            logger.info(
                f"Ranking by member {snapshot.member_id} in workgroup {snapshot.workgroup_id} "
                f"became stale at {now.isoformat()}"
            )
            return

        # Someone else wrote first; adopt whatever is stored now.
        current = RankingSnapshot.objects.filter(pk=snapshot.pk).values("stale_since", "row_version").first()
        if current and current["row_version"] == snapshot.row_version:
            snapshot.stale_since = current["stale_since"]
        else:
            # Replaced by a newer submission; treat as freshly stale for this read only.
            logger.debug(f"Snapshot {snapshot.pk} was replaced while marking it stale")
            snapshot.stale_since = now

    def _clear_stale(self, snapshot: RankingSnapshot) -> None:
        RankingSnapshot.objects.filter(pk=snapshot.pk, row_version=snapshot.row_version).update(
            stale_since=None,
            last_stale_reminder_sent_at=None,
            last_grace_period_ended_sent_at=None,
        )
        snapshot.stale_since = None
        snapshot.last_stale_reminder_sent_at = None
        snapshot.last_grace_period_ended_sent_at = None
        logger.info(
            f"Ranking by member {snapshot.member_id} in workgroup {snapshot.workgroup_id} "
            f"is complete again"
        )
