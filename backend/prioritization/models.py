from typing import Dict, Iterable, List

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from workgroups.models import Workgroup


class EligibilitySet(models.Model):
    """
    The set of work items that currently count toward prioritization for a
    workgroup. `version` increases by one every time membership of the set
    actually changes and is the cache key for the aggregate ordering.

    Rows are only written by the eligibility tracker in response to work
    item stage events, never edited directly.
    """
    workgroup = models.OneToOneField(
        Workgroup,
        on_delete=models.CASCADE,
        related_name='eligibility_set',
        verbose_name=_("workgroup")
    )
    version = models.PositiveBigIntegerField(
        default=0,
        verbose_name=_("version"),
        help_text=_("Bumped on every membership change; doubles as the optimistic concurrency token.")
    )
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Eligibility Set")
        verbose_name_plural = _("Eligibility Sets")

    def __str__(self):
        return f"Eligibility for {self.workgroup_id} (v{self.version})"


class EligibleItem(models.Model):
    """
    One eligible work item. Only the identity and creation time of the item
    are kept; the item record itself belongs to the task collaborator.
    """
    eligibility_set = models.ForeignKey(
        EligibilitySet,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_("eligibility set")
    )
    item_id = models.CharField(max_length=64, verbose_name=_("item id"))
    # Tie-break metadata received with the stage event
    item_created_at = models.DateTimeField(verbose_name=_("item created at"))
    added_at = models.DateTimeField(auto_now_add=True, verbose_name=_("added at"))

    class Meta:
        verbose_name = _("Eligible Item")
        verbose_name_plural = _("Eligible Items")
        constraints = [
            models.UniqueConstraint(fields=['eligibility_set', 'item_id'], name='unique_eligible_item'),
        ]

    def __str__(self):
        return self.item_id


class RankingSnapshot(models.Model):
    """
    A member's latest submitted ordering of a workgroup's eligible items.

    There is at most one row per (member, workgroup); a new submission
    replaces the ordering in place. `stale_since` is the only persisted
    piece of staleness state.
    """
    member = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ranking_snapshots',
        verbose_name=_("member")
    )
    workgroup = models.ForeignKey(
        Workgroup,
        on_delete=models.CASCADE,
        related_name='ranking_snapshots',
        verbose_name=_("workgroup")
    )

    ordered_ids = models.JSONField(
        default=list,
        verbose_name=_("ordered item ids"),
        help_text=_("Most preferred first. Ids that left eligibility are ignored on read.")
    )
    submitted_at = models.DateTimeField(verbose_name=_("submitted at"))
    eligibility_version = models.PositiveBigIntegerField(
        verbose_name=_("eligibility version"),
        help_text=_("EligibilitySet.version in effect when the ordering was submitted.")
    )

    stale_since = models.DateTimeField(
        null=True, blank=True,
        verbose_name=_("stale since"),
        help_text=_("First time the ordering was observed to miss an eligible item.")
    )
    row_version = models.PositiveIntegerField(
        default=1,
        verbose_name=_("row version"),
        help_text=_("Optimistic concurrency token, bumped on every replacement.")
    )

    # Reminder bookkeeping for the staleness sweep
    last_stale_reminder_sent_at = models.DateTimeField(null=True, blank=True)
    last_grace_period_ended_sent_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    class Meta:
        verbose_name = _("Ranking Snapshot")
        verbose_name_plural = _("Ranking Snapshots")
        ordering = ['workgroup_id', 'member_id']
        constraints = [
            models.UniqueConstraint(fields=['member', 'workgroup'], name='unique_member_workgroup_ranking'),
        ]

    def __str__(self):
        return f"Ranking by {self.member_id} in {self.workgroup_id}"

    def effective_ids(self, eligible_ids: Iterable[str]) -> List[str]:
        """Stored ordering with ids that are no longer eligible dropped."""
        eligible = eligible_ids if isinstance(eligible_ids, (set, frozenset)) else set(eligible_ids)
        return [item_id for item_id in self.ordered_ids if item_id in eligible]

    def user_ranks(self, eligible_ids: Iterable[str]) -> Dict[str, int]:
        """1-based position of each still-eligible item in this ordering."""
        return {
            item_id: position
            for position, item_id in enumerate(self.effective_ids(eligible_ids), start=1)
        }
