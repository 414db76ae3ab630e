"""Invariant checks over a user's full snapshot of lists and tasks."""

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from tasktree.models import Task, TaskList


def assert_dense(lists: Sequence[TaskList], tasks: Sequence[Task]) -> None:
    """Every sibling group (lists, and tasks per container) is ranked 0..n-1."""
    list_orders = sorted(task_list.order for task_list in lists)
    assert list_orders == list(range(len(lists))), f"List orders not dense: {list_orders}"

    groups: Dict[Tuple[str, Optional[str]], List[int]] = defaultdict(list)
    for task in tasks:
        groups[(task.list_id, task.parent_id)].append(task.order)
    for container, orders in groups.items():
        assert sorted(orders) == list(range(len(orders))), (
            f"Sibling orders not dense in {container}: {sorted(orders)}"
        )


def assert_path_consistency(tasks: Sequence[Task]) -> None:
    """Each path equals the parent's path plus the parent id, within one list."""
    by_id = {task.id: task for task in tasks}
    for task in tasks:
        if task.parent_id is None:
            assert task.path == [], f"Top-level task {task.title} has a path"
            continue
        parent = by_id.get(task.parent_id)
        assert parent is not None, f"Parent of {task.title} is missing"
        assert task.path == parent.child_path(), f"Path of {task.title} is stale"
        assert task.list_id == parent.list_id, f"{task.title} is in another list than its parent"


def assert_depth_bound(tasks: Sequence[Task], max_depth: int) -> None:
    for task in tasks:
        assert task.depth <= max_depth, f"{task.title} at depth {task.depth} exceeds {max_depth}"


def assert_acyclic(tasks: Sequence[Task]) -> None:
    for task in tasks:
        assert task.id not in task.path, f"{task.title} is its own ancestor"
        assert len(set(task.path)) == len(task.path), f"{task.title} has a repeated ancestor"


def assert_list_references(lists: Sequence[TaskList], tasks: Sequence[Task]) -> None:
    list_ids = {task_list.id for task_list in lists}
    for task in tasks:
        assert task.list_id in list_ids, f"{task.title} references a missing list"


def assert_all_invariants(
    lists: Sequence[TaskList],
    tasks: Sequence[Task],
    max_depth: int = 4,
) -> None:
    """Run every invariant check over one snapshot."""
    assert_dense(lists, tasks)
    assert_path_consistency(tasks)
    assert_depth_bound(tasks, max_depth)
    assert_acyclic(tasks)
    assert_list_references(lists, tasks)
