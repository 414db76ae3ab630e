"""
Pending changes for optimistic display.

A presentation layer that has issued a reorder or a move can overlay the
expected result on the last snapshot until the change feed delivers a snapshot
that already reflects it. The change kinds form a tagged union keyed on
``kind``; every function dispatches over all of them and rejects anything
else.

The overlay reuses the ordering and hierarchy engines, so the speculative
state is computed exactly the way the committed one will be. Inputs are never
modified.
"""

from typing import Annotated, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field, TypeAdapter

from tasktree.models import Task, TaskList
from tasktree.services import hierarchy, ordering


class ReorderChange(BaseModel):
    """Siblings of one container were reordered."""

    kind: Literal["reorder"] = "reorder"
    list_id: str
    parent_id: Optional[str] = None
    ordered_ids: List[str]


class ReparentChange(BaseModel):
    """A subtree was moved to another container."""

    kind: Literal["reparent"] = "reparent"
    task_id: str
    target_list_id: str
    target_parent_id: Optional[str] = None
    insert_index: Optional[int] = None


class ListReorderChange(BaseModel):
    """The user's lists were reordered."""

    kind: Literal["list_reorder"] = "list_reorder"
    ordered_ids: List[str]


PendingChange = Annotated[
    Union[ReorderChange, ReparentChange, ListReorderChange],
    Field(discriminator="kind"),
]

_pending_change_adapter: TypeAdapter = TypeAdapter(PendingChange)


def parse_pending_change(data: dict) -> PendingChange:
    """Build the right change variant from its ``kind`` tag."""
    return _pending_change_adapter.validate_python(data)


def _siblings(tasks: Sequence[Task], list_id: str, parent_id: Optional[str]) -> List[Task]:
    return ordering.sort_by_order(
        task for task in tasks if task.list_id == list_id and task.parent_id == parent_id
    )


def _apply_updates(tasks: Sequence[Task], updates: Dict[str, dict]) -> List[Task]:
    return [
        task.model_copy(update=updates[task.id]) if task.id in updates else task.model_copy()
        for task in tasks
    ]


def _apply_reparent(tasks: Sequence[Task], change: ReparentChange) -> List[Task]:
    by_id = {task.id: task for task in tasks}
    root = by_id.get(change.task_id)
    if root is None:
        return _apply_updates(tasks, {})

    target_parent = None
    if change.target_parent_id is not None:
        target_parent = by_id.get(change.target_parent_id)
        if target_parent is None or root.id in target_parent.child_path():
            return _apply_updates(tasks, {})

    source_tasks = [task for task in tasks if task.list_id == root.list_id]
    descendants = hierarchy.descendants_of(root.id, source_tasks)
    updates = hierarchy.plan_subtree_move(root, change.target_list_id, target_parent, descendants)

    new_siblings = _siblings(tasks, change.target_list_id, change.target_parent_id)
    position, new_orders = ordering.insert_at(new_siblings, root.id, change.insert_index)

    if (root.list_id, root.parent_id) != (change.target_list_id, change.target_parent_id):
        old_siblings = _siblings(tasks, root.list_id, root.parent_id)
        for task_id, order in ordering.close_gap(old_siblings, [root.id]).items():
            updates.setdefault(task_id, {})["order"] = order

    for task_id, order in new_orders.items():
        updates.setdefault(task_id, {})["order"] = order
    updates[root.id]["order"] = position

    return _apply_updates(tasks, updates)


def apply_pending_change(tasks: Sequence[Task], change: PendingChange) -> List[Task]:
    """
    Overlay a pending change on a task snapshot.

    Illegal or stale changes (missing task, cycle) leave the snapshot as is.

    Args:
        tasks: Latest task snapshot
        change: The change awaiting confirmation

    Returns:
        New list of tasks with the change applied
    """
    if isinstance(change, ReorderChange):
        siblings = _siblings(tasks, change.list_id, change.parent_id)
        orders = ordering.reorder(siblings, change.ordered_ids, strict=False)
        return _apply_updates(tasks, {task_id: {"order": order} for task_id, order in orders.items()})
    if isinstance(change, ReparentChange):
        return _apply_reparent(tasks, change)
    if isinstance(change, ListReorderChange):
        return _apply_updates(tasks, {})
    raise TypeError(f"Unknown pending change: {change!r}")


def apply_list_order(lists: Sequence[TaskList], change: Optional[PendingChange]) -> List[TaskList]:
    """
    Overlay a pending change on a list snapshot.

    Returns:
        Lists sorted by their (possibly speculative) rank
    """
    if change is None or isinstance(change, (ReorderChange, ReparentChange)):
        return ordering.sort_by_order(task_list.model_copy() for task_list in lists)
    if isinstance(change, ListReorderChange):
        orders = ordering.reorder(lists, change.ordered_ids, strict=False)
        return ordering.sort_by_order(
            task_list.model_copy(update={"order": orders.get(task_list.id, task_list.order)})
            for task_list in lists
        )
    raise TypeError(f"Unknown pending change: {change!r}")


def is_reconciled(
    snapshot: Sequence[Union[Task, TaskList]],
    change: PendingChange,
) -> bool:
    """
    Check whether an authoritative snapshot already reflects a change.

    Args:
        snapshot: Task snapshot for task changes, list snapshot for list changes
        change: The change awaiting confirmation

    Returns:
        True once the overlay can be dropped
    """
    if isinstance(change, ReorderChange):
        current = [task.id for task in _siblings(snapshot, change.list_id, change.parent_id)]
        return current == list(change.ordered_ids)
    if isinstance(change, ReparentChange):
        task = next((item for item in snapshot if item.id == change.task_id), None)
        return (
            task is not None
            and task.list_id == change.target_list_id
            and task.parent_id == change.target_parent_id
        )
    if isinstance(change, ListReorderChange):
        current = [task_list.id for task_list in ordering.sort_by_order(snapshot)]
        return current == list(change.ordered_ids)
    raise TypeError(f"Unknown pending change: {change!r}")
