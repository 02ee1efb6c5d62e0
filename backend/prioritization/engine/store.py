# prioritization/engine/store.py

import logging
from collections import Counter
from datetime import datetime
from typing import List, Optional, Sequence

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from ..exceptions import ConcurrentModification, IncompleteSubmission, InvalidSubmission
from ..models import RankingSnapshot
from .cache import AggregateViewCache
from .eligibility import EligibilityTracker, max_write_retries

logger = logging.getLogger(__name__)


def require_complete_default() -> bool:
    return bool(getattr(settings, "PRIORITIZATION_REQUIRE_COMPLETE_RANKING", False))


class UserRankingStore:
    """
    Persists each member's latest ordering per workgroup.

    A submission is validated against the eligibility set while holding that
    set's row lock, so an item cannot leave eligibility between the check
    and the write. Replacements compare-and-swap on `row_version`.
    """

    def __init__(
        self,
        tracker: Optional[EligibilityTracker] = None,
        cache: Optional[AggregateViewCache] = None,
    ):
        self.tracker = tracker or EligibilityTracker()
        self.cache = cache or AggregateViewCache()

    def current(self, member_id: int, workgroup_id: int) -> Optional[RankingSnapshot]:
        return RankingSnapshot.objects.filter(member_id=member_id, workgroup_id=workgroup_id).first()

    def all(self, workgroup_id: int) -> List[RankingSnapshot]:
        """Snapshots of current members only; a member who left no longer votes."""
        return list(
            RankingSnapshot.objects.filter(
                workgroup_id=workgroup_id,
                member__memberships__workgroup_id=workgroup_id,
            ).distinct()
        )

    def submit(
        self,
        member_id: int,
        workgroup_id: int,
        ordered_ids: Sequence[str],
        require_complete: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> RankingSnapshot:
        """
        Validate and store a member's ordering, replacing any previous one.

        Raises:
            InvalidSubmission: duplicate ids, or ids not currently eligible.
            IncompleteSubmission: completeness is required and ids are missing.
            ConcurrentModification: the row kept changing across retries.
        """
        ordered_ids = [str(item_id) for item_id in ordered_ids]
        if require_complete is None:
            require_complete = require_complete_default()

        duplicates = [item_id for item_id, count in Counter(ordered_ids).items() if count > 1]
        if duplicates:
            raise InvalidSubmission(
                f"Ranking contains duplicate ids: {', '.join(sorted(duplicates))}",
                duplicate_ids=duplicates,
            )

        attempts = max_write_retries()
        for attempt in range(1, attempts + 1):
            with transaction.atomic():
                eligibility_set = self.tracker.lock(workgroup_id)
                eligible = set(eligibility_set.items.values_list("item_id", flat=True))

                invalid = set(ordered_ids) - eligible
                if invalid:
                    raise InvalidSubmission(
                        f"Ranking contains ids that are not eligible: {', '.join(sorted(invalid))}",
                        invalid_ids=invalid,
                    )

                missing = eligible - set(ordered_ids)
                if require_complete and missing:
                    raise IncompleteSubmission(
                        f"Ranking is missing {len(missing)} eligible item(s).",
                        missing_ids=missing,
                    )

                submitted_at = now or timezone.now()
                fields = {
                    "ordered_ids": ordered_ids,
                    "submitted_at": submitted_at,
                    "eligibility_version": eligibility_set.version,
                }
                if not missing:
                    # A complete ordering ends any stale period.
                    fields.update(
                        stale_since=None,
                        last_stale_reminder_sent_at=None,
                        last_grace_period_ended_sent_at=None,
                    )

                snapshot = self._write(member_id, workgroup_id, fields)

            if snapshot is not None:
                logger.info(
                    f"Member {member_id} ranked {len(ordered_ids)} item(s) in workgroup {workgroup_id} "
                    f"(eligibility v{eligibility_set.version}, {len(missing)} missing)"
                )
                self.cache.invalidate(workgroup_id)
                return snapshot

            logger.warning(
                f"Ranking write conflict for member {member_id} in workgroup {workgroup_id} "
                f"(attempt {attempt}/{attempts})"
            )

        raise ConcurrentModification(
            f"Could not store ranking for member {member_id} after {attempts} attempts.",
            attempts=attempts,
        )

    def _write(self, member_id: int, workgroup_id: int, fields: dict) -> Optional[RankingSnapshot]:
        """Insert or CAS-replace the row. None means another writer won."""
        existing = self.current(member_id, workgroup_id)

        if existing is None:
            try:
                with transaction.atomic():
                    return RankingSnapshot.objects.create(
                        member_id=member_id, workgroup_id=workgroup_id, **fields
                    )
            except IntegrityError:
                # Lost the race to create the first row for this member
                return None

        updated = RankingSnapshot.objects.filter(
            pk=existing.pk, row_version=existing.row_version
        ).update(row_version=F("row_version") + 1, **fields)
        if not updated:
            return None

        existing.refresh_from_db()
        return existing
