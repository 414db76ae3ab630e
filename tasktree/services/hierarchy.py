"""
Hierarchy engine for TaskTree.

Computes depths and materialized paths, validates moves against the depth
bound and acyclicity, and plans the path/list rewrite of a moved subtree.

Depth is 1-based: a top-level task is depth 1 and ``depth == len(path) + 1``.
Subtrees are handled through their flat descendant set (every task whose path
contains the root id), never by recursive traversal.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from tasktree.logging_config import get_logger
from tasktree.models import Task
from tasktree.services.errors import CycleError, NestingLimitError, TaskNotFoundError

logger = get_logger(__name__)


def child_depth(parent: Optional[Task]) -> int:
    """Depth a direct child of ``parent`` would have (1 for top level)."""
    if parent is None:
        return 1
    return parent.depth + 1


def child_path(parent: Optional[Task]) -> List[str]:
    """Path a direct child of ``parent`` would carry."""
    if parent is None:
        return []
    return parent.child_path()


def descendants_of(task_id: str, tasks: Iterable[Task]) -> List[Task]:
    """In-memory ancestor-containment query: tasks whose path contains ``task_id``."""
    return [task for task in tasks if task_id in task.path]


def subtree_height(root_id: str, descendants: Iterable[Task]) -> int:
    """
    Height of the subtree rooted at ``root_id``.

    A leaf has height 1. Each descendant contributes the number of path
    entries after the root, which is its distance below the root minus one.

    Args:
        root_id: Id of the subtree root
        descendants: Every task whose path contains ``root_id``

    Returns:
        1 + the longest descendant chain below the root
    """
    deepest = 0
    for descendant in descendants:
        if root_id not in descendant.path:
            continue
        below = len(descendant.path) - descendant.path.index(root_id)
        deepest = max(deepest, below)
    return 1 + deepest


def check_child_depth(parent: Task, max_depth: int) -> int:
    """
    Validate that ``parent`` may receive a new child.

    Args:
        parent: Prospective parent task
        max_depth: Deepest allowed depth

    Returns:
        Depth of the new child

    Raises:
        NestingLimitError: If the child would exceed ``max_depth``
    """
    depth = child_depth(parent)
    if depth > max_depth:
        logger.debug(f"Nesting limit reached: parent={parent.id}, child_depth={depth}, max_depth={max_depth}")
        raise NestingLimitError(
            f"Cannot create child task. Parent task at depth {parent.depth} "
            f"has reached maximum nesting depth ({max_depth})."
        )
    return depth


def validate_move(
    root: Task,
    target_parent_id: Optional[str],
    target_parent: Optional[Task],
    descendants: Sequence[Task],
    max_depth: int,
) -> None:
    """
    Check that moving ``root`` under ``target_parent_id`` is legal.

    Checks run in order: self-parenting, target existence, target inside the
    moved subtree, and the depth bound for the deepest moved descendant.

    Args:
        root: Task being moved
        target_parent_id: Requested parent id, or None for top level
        target_parent: The fetched target parent (None if missing or top level)
        descendants: Every task whose path contains ``root.id``
        max_depth: Deepest allowed depth

    Raises:
        CycleError: If the target is the root itself or one of its descendants
        TaskNotFoundError: If a target parent id was given but does not exist
        NestingLimitError: If the moved subtree would exceed ``max_depth``
    """
    if target_parent_id is not None and target_parent_id == root.id:
        raise CycleError(f"Cannot move task {root.id} to be its own parent")

    if target_parent_id is not None and target_parent is None:
        raise TaskNotFoundError(f"Target parent task with id {target_parent_id} not found")

    if target_parent is not None and root.id in target_parent.path:
        raise CycleError(f"Cannot move task {root.id} under its own descendant {target_parent.id}")

    height = subtree_height(root.id, descendants)
    new_depth = child_depth(target_parent)
    if new_depth + (height - 1) > max_depth:
        raise NestingLimitError(
            f"Cannot move task {root.id}. Subtree of height {height} at depth {new_depth} "
            f"would exceed maximum nesting depth ({max_depth})."
        )


def rebase_path(old_path: Sequence[str], root_id: str, new_root_path: Sequence[str]) -> List[str]:
    """
    Re-root a descendant path after its subtree root moved.

    Everything up to and including ``root_id`` is replaced by the root's new
    path plus the root id; the part below the root is kept.
    """
    if root_id in old_path:
        suffix = list(old_path[list(old_path).index(root_id) + 1:])
    else:
        suffix = []
    return [*new_root_path, root_id, *suffix]


def plan_subtree_move(
    root: Task,
    target_list_id: str,
    target_parent: Optional[Task],
    descendants: Iterable[Task],
) -> Dict[str, Dict[str, Any]]:
    """
    Plan the container and path rewrite for moving ``root`` and its subtree.

    Ranks are not touched here; see the ordering engine.

    Returns:
        Mapping of task id to changed fields
    """
    new_root_path = child_path(target_parent)
    updates: Dict[str, Dict[str, Any]] = {
        root.id: {
            "list_id": target_list_id,
            "parent_id": target_parent.id if target_parent else None,
            "path": new_root_path,
        }
    }

    for descendant in descendants:
        updates[descendant.id] = {
            "list_id": target_list_id,
            "path": rebase_path(descendant.path, root.id, new_root_path),
        }

    return updates
