# tasks/signals.py

import logging

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from prioritization.services import PrioritizationService

from .models import Task

logger = logging.getLogger(__name__)


def _warm_after_commit(workgroup_id: int) -> None:
    def trigger_warm():
        from prioritization.engine.celery_tasks import warm_aggregate_cache
        warm_aggregate_cache.delay(workgroup_id)

    transaction.on_commit(trigger_warm)


@receiver(post_save, sender=Task, dispatch_uid="tasks_stage_changed")
def task_stage_changed(sender, instance: Task, created: bool, raw: bool = False, **kwargs):
    """
    Forward the task's current stage as an eligibility event. Saves that do
    not touch the stage are no-ops inside the tracker.
    """
    if raw:
        return

    changed = PrioritizationService().notify_eligibility_change(
        instance.workgroup_id,
        instance.item_id,
        instance.stage,
        created_at=instance.created_at,
    )
    if changed:
        logger.info(f"Task {instance.pk} moved to {instance.stage}; eligibility updated")
        _warm_after_commit(instance.workgroup_id)


@receiver(post_delete, sender=Task, dispatch_uid="tasks_removed")
def task_removed(sender, instance: Task, **kwargs):
    changed = PrioritizationService().notify_item_removed(instance.workgroup_id, instance.item_id)
    if changed:
        logger.info(f"Task {instance.pk} deleted; removed from eligibility")
        _warm_after_commit(instance.workgroup_id)
