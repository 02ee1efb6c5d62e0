from django.db import models
from django.conf import settings
from django.utils.translation import gettext_lazy as _


class Workgroup(models.Model):
    """
    A group of members that prioritizes a shared pool of work items.
    """
    name = models.CharField(max_length=255, verbose_name=_("name"))
    handle = models.SlugField(max_length=100, unique=True, verbose_name=_("handle"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='Membership',
        related_name='workgroups',
        verbose_name=_("members")
    )

    class Meta:
        verbose_name = _("Workgroup")
        verbose_name_plural = _("Workgroups")
        ordering = ['name']

    def __str__(self):
        return self.name

    def has_member(self, member_id) -> bool:
        return self.memberships.filter(member_id=member_id).exists()


class Membership(models.Model):
    """
    Links a member to a workgroup. Roles and invitations live with the
    identity collaborator; only the fact of membership matters here.
    """
    workgroup = models.ForeignKey(
        Workgroup,
        on_delete=models.CASCADE,
        related_name='memberships',
        verbose_name=_("workgroup")
    )
    member = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='memberships',
        verbose_name=_("member")
    )
    joined_at = models.DateTimeField(auto_now_add=True, verbose_name=_("joined at"))

    class Meta:
        verbose_name = _("Membership")
        verbose_name_plural = _("Memberships")
        constraints = [
            models.UniqueConstraint(fields=['workgroup', 'member'], name='unique_workgroup_member'),
        ]

    def __str__(self):
        return f"{self.member} in {self.workgroup}"
