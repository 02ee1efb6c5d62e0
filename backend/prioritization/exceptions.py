# prioritization/exceptions.py
"""
Error kinds raised by the prioritization engine.

None of these depend on the HTTP layer; views translate them into
responses (see prioritization/views.py).
"""

from __future__ import annotations

from typing import Iterable, List, Optional


class PrioritizationError(Exception):
    """Base class for every error the engine raises on purpose."""

    pass


class InvalidSubmission(PrioritizationError):
    """
    A ranking contained a duplicate id or an id that is not currently
    eligible. Nothing was written; the caller should re-fetch the eligible
    set and retry.
    """

    def __init__(
        self,
        message: str,
        invalid_ids: Iterable[str] = (),
        duplicate_ids: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.invalid_ids: List[str] = sorted(set(invalid_ids))
        self.duplicate_ids: List[str] = sorted(set(duplicate_ids))


class IncompleteSubmission(PrioritizationError):
    """Raised when the completeness policy is on and eligible ids are missing."""

    def __init__(self, message: str, missing_ids: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.missing_ids: List[str] = sorted(set(missing_ids))


class NotFound(PrioritizationError):
    """The workgroup, or the member within it, is unknown."""

    pass


class ConcurrentModification(PrioritizationError):
    """An optimistic concurrency token kept changing underneath the write."""

    def __init__(self, message: str, attempts: Optional[int] = None) -> None:
        super().__init__(message)
        self.attempts = attempts


class StorageFailure(PrioritizationError):
    """The backing store failed. Chained to the original database error."""

    pass
