"""
Events emitted by the staleness sweep.

Delivering the notification (email, chat, push) is up to whoever
connects a receiver. Both signals send the RankingSnapshot as `sender`'s
instance along with:

    snapshot, workgroup_id, member_id, unranked_count, grace_period_ends_at
"""

from django.dispatch import Signal

# A ranking has been stale for PRIORITIZATION_STALE_REMINDER_HOURS.
ranking_stale_reminder = Signal()

# A stale ranking's grace period has run out; it no longer counts.
ranking_grace_period_ended = Signal()
