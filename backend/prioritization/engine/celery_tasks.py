# prioritization/engine/celery_tasks.py

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from ..models import RankingSnapshot
from ..signals import ranking_grace_period_ended, ranking_stale_reminder
from .aggregation import AggregationEngine
from .eligibility import EligibilityTracker
from .staleness import StalenessPolicy
from .store import UserRankingStore

logger = logging.getLogger(__name__)

DEFAULT_STALE_REMINDER_HOURS = 48


def _stale_reminder_delay() -> timedelta:
    hours = getattr(settings, 'PRIORITIZATION_STALE_REMINDER_HOURS', DEFAULT_STALE_REMINDER_HOURS)
    return timedelta(hours=float(hours))


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    max_retries=3,
    time_limit=30,
    soft_time_limit=25
)
def warm_aggregate_cache(self, workgroup_id: int) -> Optional[int]:
    """
    Recompute a workgroup's aggregate ordering after an eligibility change
    so the next read is served from cache. Returns the eligibility version
    that was warmed.
    """
    logger.info(f"Warming aggregate cache for workgroup {workgroup_id}")
    try:
        view = AggregationEngine().aggregate(workgroup_id)
        return view.eligibility_version
    except Exception as exc:
        logger.exception(f"Aggregate cache warm failed for workgroup {workgroup_id}: {exc}")
        raise


def _sweep_workgroup(
    workgroup_id: int,
    now: datetime,
    policy: StalenessPolicy,
    store: UserRankingStore,
    tracker: EligibilityTracker,
) -> Dict[str, int]:
    counts = {"stale": 0, "expired": 0, "reminders_sent": 0, "grace_period_ended_sent": 0}
    reminder_delay = _stale_reminder_delay()

    snapshots = store.all(workgroup_id)
    statuses = policy.evaluate(snapshots, tracker.current_eligible_ids(workgroup_id), now=now)

    for snapshot in snapshots:
        status = statuses[snapshot.member_id]
        if not status.is_stale:
            continue
        counts["stale"] += 1

        event_kwargs = dict(
            snapshot=snapshot,
            workgroup_id=workgroup_id,
            member_id=snapshot.member_id,
            unranked_count=status.unranked_count,
            grace_period_ends_at=status.expires_at,
        )

        if status.is_expired:
            counts["expired"] += 1
            if snapshot.last_grace_period_ended_sent_at is None and _claim(
                snapshot, "last_grace_period_ended_sent_at", now
            ):
                ranking_grace_period_ended.send(sender=RankingSnapshot, **event_kwargs)
                counts["grace_period_ended_sent"] += 1
        elif (
            snapshot.last_stale_reminder_sent_at is None
            and now >= status.stale_since + reminder_delay
            and _claim(snapshot, "last_stale_reminder_sent_at", now)
        ):
            ranking_stale_reminder.send(sender=RankingSnapshot, **event_kwargs)
            counts["reminders_sent"] += 1

    return counts


def _claim(snapshot: RankingSnapshot, field_name: str, now: datetime) -> bool:
    """
    Record that an event went out for this stale period. Only one sweep
    (and no resubmission in between) can win the conditional update.
    """
    with transaction.atomic():
        claimed = RankingSnapshot.objects.filter(
            pk=snapshot.pk,
            row_version=snapshot.row_version,
            stale_since=snapshot.stale_since,
            **{f"{field_name}__isnull": True}
        ).update(**{field_name: now})
    if claimed:
        setattr(snapshot, field_name, now)
    return bool(claimed)


@shared_task(bind=True)
def sweep_ranking_staleness(self, now: Optional[str] = None) -> Dict[str, Any]:
    """
    Periodic job: materialize staleness for every workgroup that has
    rankings and emit reminder / grace-period-ended events once per stale
    period. `now` is an ISO timestamp, mostly for tests.

    A failing workgroup is logged and skipped.
    """
    current_time = parse_datetime(now) if now else timezone.now()
    # An offset-less `now` is read in the project time zone
    if timezone.is_naive(current_time):
        current_time = timezone.make_aware(current_time)
    tracker = EligibilityTracker()
    policy = StalenessPolicy(tracker=tracker)
    store = UserRankingStore(tracker=tracker)

    summary: Dict[str, Any] = {
        "workgroups": 0,
        "failed_workgroups": [],
        "stale": 0,
        "expired": 0,
        "reminders_sent": 0,
        "grace_period_ended_sent": 0,
    }

    workgroup_ids = (
        RankingSnapshot.objects.order_by()
        .values_list("workgroup_id", flat=True)
        .distinct()
    )
    for workgroup_id in sorted(workgroup_ids):
        try:
            counts = _sweep_workgroup(workgroup_id, current_time, policy, store, tracker)
        except Exception as exc:
            logger.exception(f"Staleness sweep failed for workgroup {workgroup_id}: {exc}")
            summary["failed_workgroups"].append(workgroup_id)
            continue

        summary["workgroups"] += 1
        for key, value in counts.items():
            summary[key] += value

    logger.info(
        f"Staleness sweep done: {summary['workgroups']} workgroup(s), {summary['stale']} stale, "
        f"{summary['reminders_sent']} reminder(s), {summary['grace_period_ended_sent']} grace-ended"
    )
    return summary
