from django.db import models
from django.utils.translation import gettext_lazy as _

from workgroups.models import Workgroup


class Task(models.Model):
    """
    A work item belonging to a workgroup. Only `stage` matters to
    prioritization: open and in-progress tasks are the ones members rank.
    """

    class Stage(models.TextChoices):
        OPEN = 'open', _("Open")
        IN_PROGRESS = 'in_progress', _("In progress")
        REVIEW = 'review', _("Review")
        RESOLVED = 'resolved', _("Resolved")

    workgroup = models.ForeignKey(
        Workgroup,
        on_delete=models.CASCADE,
        related_name='tasks',
        verbose_name=_("workgroup")
    )

    title = models.CharField(max_length=255, verbose_name=_("title"))
    description = models.TextField(blank=True, verbose_name=_("description"))
    stage = models.CharField(
        max_length=20,
        choices=Stage.choices,
        default=Stage.OPEN,
        verbose_name=_("stage"),
        help_text=_("Open and in-progress tasks take part in prioritization.")
    )

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Task")
        verbose_name_plural = _("Tasks")
        ordering = ['created_at']

    def __str__(self):
        return f"{self.title} ({self.stage})"

    @property
    def item_id(self) -> str:
        """Identity under which the prioritization engine knows this task."""
        return str(self.pk)
