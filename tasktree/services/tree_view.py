"""
Read-side helpers for rendering snapshots.

Turns the flat, rank-ordered snapshots delivered by the change feed into the
shapes a presentation layer draws: lists in display order, children grouped
by parent, and a depth-first flattening of one list's forest.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from tasktree.models import Task, TaskList
from tasktree.services.ordering import sort_by_order


def sorted_lists(lists: Sequence[TaskList]) -> List[TaskList]:
    """Lists in display order."""
    return sort_by_order(lists)


def children_by_parent(tasks: Sequence[Task], list_id: str) -> Dict[Optional[str], List[Task]]:
    """
    Group one list's tasks by parent id.

    Args:
        tasks: Task snapshot (may span several lists)
        list_id: List to group

    Returns:
        Mapping of parent id (None for top level) to children sorted by rank
    """
    groups: Dict[Optional[str], List[Task]] = {}
    for task in tasks:
        if task.list_id == list_id:
            groups.setdefault(task.parent_id, []).append(task)
    return {parent_id: sort_by_order(children) for parent_id, children in groups.items()}


def flatten_tree(
    tasks: Sequence[Task],
    list_id: str,
    include_collapsed: bool = False,
) -> List[Tuple[Task, int]]:
    """
    Depth-first flattening of one list's forest.

    Children of a collapsed task are skipped unless ``include_collapsed`` is
    set. Tasks whose parent is missing from the snapshot are not reachable
    and are left out.

    Args:
        tasks: Task snapshot
        list_id: List to flatten
        include_collapsed: Also emit children of collapsed tasks

    Returns:
        ``(task, depth)`` rows in display order, depth starting at 1
    """
    groups = children_by_parent(tasks, list_id)
    rows: List[Tuple[Task, int]] = []

    stack = [(task, 1) for task in reversed(groups.get(None, []))]
    while stack:
        task, depth = stack.pop()
        rows.append((task, depth))
        if task.collapsed and not include_collapsed:
            continue
        for child in reversed(groups.get(task.id, [])):
            stack.append((child, depth + 1))

    return rows


def split_completed(tasks: Sequence[Task]) -> Tuple[List[Task], List[Task]]:
    """Partition tasks into (open, completed), each keeping rank order."""
    ordered = sort_by_order(tasks)
    return (
        [task for task in ordered if not task.completed],
        [task for task in ordered if task.completed],
    )
