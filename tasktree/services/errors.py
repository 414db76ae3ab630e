"""
Rejection types raised by the mutation services.

Every rejection is detected before a write batch is built, so raising one
never leaves a partial write behind. The Board facade turns them into
silent no-ops; the ``reason`` code keeps them distinguishable in logs and
tests.
"""

from enum import Enum


class RejectReason(str, Enum):
    """Why a mutation was turned into a no-op."""

    NOT_FOUND = "not_found"
    NESTING_LIMIT = "nesting_limit"
    CYCLE = "cycle"
    INVALID_TARGET = "invalid_target"
    INVALID_ORDERING = "invalid_ordering"


class MutationRejected(Exception):
    """Base exception for rejected mutations."""

    reason: RejectReason = RejectReason.NOT_FOUND


class TaskNotFoundError(MutationRejected):
    """Raised when a task is not found."""

    reason = RejectReason.NOT_FOUND


class TaskListNotFoundError(MutationRejected):
    """Raised when a task list is not found."""

    reason = RejectReason.NOT_FOUND


class NestingLimitError(MutationRejected):
    """Raised when a task or moved subtree would exceed the maximum depth."""

    reason = RejectReason.NESTING_LIMIT


class CycleError(MutationRejected):
    """Raised when a move would make a task its own ancestor."""

    reason = RejectReason.CYCLE


class InvalidMoveError(MutationRejected):
    """Raised when a move target is inconsistent (parent in another list)."""

    reason = RejectReason.INVALID_TARGET


class InvalidOrderingError(MutationRejected):
    """Raised when a reorder request does not name exactly the current members."""

    reason = RejectReason.INVALID_ORDERING
