"""Error types raised by the budget engine and its store."""

from __future__ import annotations

from typing import Any, List, Sequence, Tuple


class BudgetError(Exception):
    """Base class for every error raised by budget_planner."""


class ValidationError(BudgetError, ValueError):
    """Malformed input, rejected before anything reaches the store."""


class InvalidMoveError(ValidationError):
    """A reorder index outside the sibling list."""


class StoreError(BudgetError):
    """Any failure reported by the backing store (I/O, permission, not found)."""


class NotFoundError(StoreError):
    """The requested record does not exist for this owner."""


class GroupCollisionError(BudgetError):
    """A freshly generated recurrence group id already exists in the store."""


class PartialApplicationError(BudgetError):
    """A composite write where only some of the individual writes went through.

    ``succeeded`` holds whatever was persisted (records or ids) and ``failed``
    holds ``(record, exception)`` pairs. Nothing is rolled back automatically.
    """

    def __init__(
        self,
        message: str,
        succeeded: Sequence[Any] = (),
        failed: Sequence[Tuple[Any, BaseException]] = (),
    ) -> None:
        super().__init__(message)
        self.succeeded: List[Any] = list(succeeded)
        self.failed: List[Tuple[Any, BaseException]] = list(failed)
