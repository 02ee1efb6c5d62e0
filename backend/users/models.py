from django.db import models
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.utils.translation import gettext_lazy as _
from .managers import MemberManager


class CustomUser(AbstractBaseUser, PermissionsMixin):
    """
    A person who can belong to workgroups and submit rankings.
    Identity itself is managed elsewhere; this model only carries what the
    API needs to authenticate a caller and resolve their member id.
    """
    email = models.EmailField(_('email address'), unique=True)

    username = models.CharField(
        _('username'),
        max_length=150,
        unique=True,
    )

    first_name = models.CharField(_('first name'), max_length=150, blank=True)
    last_name = models.CharField(_('last name'), max_length=150, blank=True)

    is_staff = models.BooleanField(_('staff status'), default=False)
    is_active = models.BooleanField(_('active'), default=True)
    date_joined = models.DateTimeField(_('date joined'), auto_now_add=True)

    objects = MemberManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')

    def get_full_name(self):
        return f'{self.first_name} {self.last_name}'.strip() or self.username

    def get_short_name(self):
        return self.first_name or self.username

    def __str__(self):
        return self.email
