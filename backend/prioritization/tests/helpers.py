# prioritization/tests/helpers.py
"""Shared fixtures for the prioritization test suites."""

from __future__ import annotations

import datetime
from typing import Iterable, List

from django.contrib.auth import get_user_model
from django.core.cache import cache

from prioritization.services import PrioritizationService
from workgroups.models import Membership, Workgroup

User = get_user_model()

# Fixed reference: January 15, 2024 at noon UTC
T0 = datetime.datetime(2024, 1, 15, 12, 0, 0, tzinfo=datetime.timezone.utc)


def days(n: float) -> datetime.timedelta:
    return datetime.timedelta(days=n)


def make_member(email: str):
    return User.objects.create_user(email=email, password="ranking-pass-123")


def make_workgroup(handle: str, members: Iterable = ()) -> Workgroup:
    workgroup = Workgroup.objects.create(name=handle.title(), handle=handle)
    for member in members:
        Membership.objects.create(workgroup=workgroup, member=member)
    return workgroup


def make_eligible(service: PrioritizationService, workgroup: Workgroup, *item_ids: str) -> List[str]:
    """Open each item, created one minute apart in argument order."""
    for i, item_id in enumerate(item_ids):
        service.notify_eligibility_change(
            workgroup.pk, item_id, "open", created_at=T0 - days(30) + datetime.timedelta(minutes=i)
        )
    return list(item_ids)


class PrioritizationFixtureMixin:
    """
    Two members in one workgroup with items A, B, C open (created in that
    order). Clears the cache so entries from earlier tests cannot leak in.
    """

    def setUp(self) -> None:
        cache.clear()
        self.service = PrioritizationService()
        self.alice = make_member("alice@example.com")
        self.bob = make_member("bob@example.com")
        self.workgroup = make_workgroup("core-team", members=[self.alice, self.bob])
        make_eligible(self.service, self.workgroup, "A", "B", "C")
