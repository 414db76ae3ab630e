"""Services for TaskTree: storage, ordering, hierarchy, mutations and the change feed."""

from tasktree.services.errors import (
    CycleError,
    InvalidMoveError,
    InvalidOrderingError,
    MutationRejected,
    NestingLimitError,
    RejectReason,
    TaskListNotFoundError,
    TaskNotFoundError,
)

__all__ = [
    "CycleError",
    "InvalidMoveError",
    "InvalidOrderingError",
    "MutationRejected",
    "NestingLimitError",
    "RejectReason",
    "TaskListNotFoundError",
    "TaskNotFoundError",
]
