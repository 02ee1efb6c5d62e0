# prioritization/engine/eligibility.py
"""
Eligibility tracking.

Keeps each workgroup's EligibilitySet in step with work item stage
transitions. Membership is derived purely from the stage reported by the
task collaborator, and every real membership change bumps the set's
`version` exactly once. Duplicate or no-op events (e.g. review -> resolved)
leave both the set and the version untouched.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from ..exceptions import ConcurrentModification
from ..models import EligibilitySet, EligibleItem

logger = logging.getLogger(__name__)

# Closed set of work item stages. Only the first two count for ranking.
STAGE_OPEN = "open"
STAGE_IN_PROGRESS = "in_progress"
STAGE_REVIEW = "review"
STAGE_RESOLVED = "resolved"

ELIGIBLE_STAGES: FrozenSet[str] = frozenset({STAGE_OPEN, STAGE_IN_PROGRESS})
KNOWN_STAGES: FrozenSet[str] = ELIGIBLE_STAGES | {STAGE_REVIEW, STAGE_RESOLVED}

DEFAULT_MAX_WRITE_RETRIES = 3


def max_write_retries() -> int:
    return max(1, int(getattr(settings, "PRIORITIZATION_MAX_WRITE_RETRIES", DEFAULT_MAX_WRITE_RETRIES)))


@dataclass(frozen=True)
class EligibilitySnapshot:
    """A consistent read of a workgroup's eligible items at one version."""

    workgroup_id: int
    version: int
    created_at: Dict[str, datetime.datetime]

    @property
    def item_ids(self) -> FrozenSet[str]:
        return frozenset(self.created_at)

    def __len__(self) -> int:
        return len(self.created_at)


class EligibilityTracker:
    """
    Reads and mutates EligibilitySet rows.

    Writes hold a row lock on the workgroup's EligibilitySet for the length
    of the transaction and additionally compare-and-swap the version, so two
    concurrent stage events can never both apply against the same version.
    """

    def lock(self, workgroup_id: int) -> EligibilitySet:
        """
        Return the workgroup's EligibilitySet locked for update, creating it
        on first use. Must be called inside `transaction.atomic()`.
        """
        EligibilitySet.objects.get_or_create(workgroup_id=workgroup_id)
        return EligibilitySet.objects.select_for_update().get(workgroup_id=workgroup_id)

    def version(self, workgroup_id: int) -> int:
        value = (
            EligibilitySet.objects.filter(workgroup_id=workgroup_id)
            .values_list("version", flat=True)
            .first()
        )
        return value or 0

    def is_eligible(self, workgroup_id: int, item_id: str) -> bool:
        return EligibleItem.objects.filter(
            eligibility_set__workgroup_id=workgroup_id, item_id=str(item_id)
        ).exists()

    def current_eligible_ids(self, workgroup_id: int) -> FrozenSet[str]:
        return frozenset(
            EligibleItem.objects.filter(eligibility_set__workgroup_id=workgroup_id)
            .values_list("item_id", flat=True)
        )

    def snapshot(self, workgroup_id: int) -> EligibilitySnapshot:
        """
        Read the eligible items together with the version they belong to.

        Readers do not lock: the version is read before and after the items
        and the read is repeated if a writer slipped in between.
        """
        attempts = max_write_retries()
        for attempt in range(1, attempts + 1):
            before = self.version(workgroup_id)
            created_at = dict(
                EligibleItem.objects.filter(eligibility_set__workgroup_id=workgroup_id)
                .values_list("item_id", "item_created_at")
            )
            if self.version(workgroup_id) == before:
                return EligibilitySnapshot(workgroup_id, before, created_at)
            logger.debug(
                f"Eligibility for workgroup {workgroup_id} changed during read "
                f"(attempt {attempt}/{attempts}); re-reading"
            )

        raise ConcurrentModification(
            f"Eligibility set for workgroup {workgroup_id} kept changing while being read.",
            attempts=attempts,
        )

    def on_stage_changed(
        self,
        workgroup_id: int,
        item_id: str,
        new_stage: str,
        created_at: Optional[datetime.datetime] = None,
    ) -> bool:
        """
        Apply a stage transition. Returns True if set membership changed
        (and the version was bumped), False for a no-op.
        """
        if new_stage not in KNOWN_STAGES:
            raise ValueError(
                f"Unknown work item stage {new_stage!r}; expected one of {sorted(KNOWN_STAGES)}"
            )
        return self._apply(workgroup_id, str(item_id), new_stage in ELIGIBLE_STAGES, created_at)

    def on_item_removed(self, workgroup_id: int, item_id: str) -> bool:
        """A work item was permanently deleted."""
        return self._apply(workgroup_id, str(item_id), False, None)

    def _apply(
        self,
        workgroup_id: int,
        item_id: str,
        make_eligible: bool,
        created_at: Optional[datetime.datetime],
    ) -> bool:
        if not make_eligible and not EligibilitySet.objects.filter(workgroup_id=workgroup_id).exists():
            # Nothing was ever eligible (or the workgroup is being deleted)
            return False

        attempts = max_write_retries()
        for attempt in range(1, attempts + 1):
            with transaction.atomic():
                eligibility_set = self.lock(workgroup_id)
                present = eligibility_set.items.filter(item_id=item_id).exists()

                if present == make_eligible:
                    logger.debug(
                        f"Eligibility no-op for item {item_id} in workgroup {workgroup_id} "
                        f"(eligible={present})"
                    )
                    return False

                bumped = EligibilitySet.objects.filter(
                    pk=eligibility_set.pk, version=eligibility_set.version
                ).update(version=F("version") + 1, updated_at=timezone.now())

                if bumped:
                    if make_eligible:
                        EligibleItem.objects.create(
                            eligibility_set=eligibility_set,
                            item_id=item_id,
                            item_created_at=created_at or timezone.now(),
                        )
                    else:
                        eligibility_set.items.filter(item_id=item_id).delete()

                    logger.info(
                        f"Item {item_id} {'entered' if make_eligible else 'left'} eligibility "
                        f"for workgroup {workgroup_id} (v{eligibility_set.version + 1})"
                    )
                    return True

            logger.warning(
                f"Eligibility version conflict for workgroup {workgroup_id} "
                f"(attempt {attempt}/{attempts})"
            )

        raise ConcurrentModification(
            f"Could not update eligibility for workgroup {workgroup_id} after {attempts} attempts.",
            attempts=attempts,
        )
