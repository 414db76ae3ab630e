"""
Task service for TaskTree.

Implements the task mutations: creation at the top level or under a parent,
field updates and toggles, subtree deletion, sibling reordering and subtree
reparenting across containers. Each mutation reads current state, validates it
completely, and then commits a single write batch; rejections are raised
before the batch is built.
"""

from typing import Any, Dict, List, Optional

from tasktree.config.nesting_config import NestingConfig
from tasktree.logging_config import get_logger
from tasktree.models import Task
from tasktree.services import hierarchy, ordering
from tasktree.services.errors import (
    InvalidMoveError,
    TaskListNotFoundError,
    TaskNotFoundError,
)
from tasktree.services.store import EntityStore

logger = get_logger(__name__)

# Default for update_task arguments the caller did not pass.
UNSET: Any = object()


class TaskService:
    """
    Service layer for task operations.

    Handles creation, updates, deletion and hierarchy changes of tasks for
    the owner of the given store.
    """

    def __init__(
        self,
        store: EntityStore,
        nesting_config: Optional[NestingConfig] = None
    ) -> None:
        """
        Initialize task service with an entity store.

        Args:
            store: Entity store scoped to the acting user
            nesting_config: Depth bound and reorder validation settings
        """
        self.store = store
        self.nesting_config = nesting_config or NestingConfig()

    def _max_depth(self, override: Optional[int] = None) -> int:
        return override if override is not None else self.nesting_config.max_depth

    # ==============================================================================
    # VALIDATION HELPERS
    # ==============================================================================

    async def _verify_list_exists(self, list_id: str) -> None:
        """
        Verify that a task list exists.

        Raises:
            TaskListNotFoundError: If list does not exist
        """
        if await self.store.get_list(list_id) is None:
            raise TaskListNotFoundError(f"Task list with id {list_id} not found")

    async def _get_task_or_raise(self, task_id: str) -> Task:
        """
        Get a task by ID or raise an exception.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        task = await self.store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task with id {task_id} not found")
        return task

    @staticmethod
    def _changed_fields(task: Task, fields: Dict[str, Any]) -> Dict[str, Any]:
        return {key: value for key, value in fields.items() if getattr(task, key) != value}

    # ==============================================================================
    # CREATE OPERATIONS
    # ==============================================================================

    async def create_root_task(
        self,
        list_id: str,
        title: str,
        client_id: Optional[str] = None,
    ) -> Task:
        """
        Create a new top-level task, appended to the list's top-level tasks.

        Args:
            list_id: ID of the task list
            title: Task title
            client_id: Optional caller-chosen correlation token

        Returns:
            Created Task instance

        Raises:
            TaskListNotFoundError: If list does not exist
        """
        logger.debug(f"Creating task: title='{title}', list_id={list_id}")

        await self._verify_list_exists(list_id)
        siblings = await self.store.get_siblings(list_id, None)

        task = Task(
            title=title,
            list_id=list_id,
            order=ordering.next_order(siblings),
            client_id=client_id,
        )

        batch = self.store.batch()
        batch.insert_task(task)
        await batch.commit()

        logger.info(f"Created task: id={task.id}, title='{title}', order={task.order}")
        return task

    async def create_child_task(
        self,
        parent_id: str,
        title: str,
        client_id: Optional[str] = None,
        max_depth: Optional[int] = None,
    ) -> Task:
        """
        Create a child task under a parent task with nesting validation.

        Args:
            parent_id: ID of the parent task
            title: Child task title
            client_id: Optional caller-chosen correlation token
            max_depth: Override of the configured maximum depth

        Returns:
            Created Task instance

        Raises:
            TaskNotFoundError: If parent task does not exist
            NestingLimitError: If the child would exceed the maximum depth
        """
        logger.debug(f"Creating child task: title='{title}', parent_id={parent_id}")

        parent = await self._get_task_or_raise(parent_id)
        depth = hierarchy.check_child_depth(parent, self._max_depth(max_depth))

        siblings = await self.store.get_siblings(parent.list_id, parent.id)
        child = Task(
            title=title,
            list_id=parent.list_id,
            parent_id=parent.id,
            path=hierarchy.child_path(parent),
            order=ordering.next_order(siblings),
            client_id=client_id,
        )

        batch = self.store.batch()
        batch.insert_task(child)
        await batch.commit()

        logger.info(
            f"Created child task: id={child.id}, title='{title}', "
            f"depth={depth}, parent_id={parent_id}"
        )
        return child

    # ==============================================================================
    # READ OPERATIONS
    # ==============================================================================

    async def get_task_by_id(self, task_id: str) -> Optional[Task]:
        """Get a task by its ID, or None if not found."""
        return await self.store.get_task(task_id)

    async def get_tasks_for_list(self, list_id: str) -> List[Task]:
        """
        Get the top-level tasks of a list ordered by rank.

        Raises:
            TaskListNotFoundError: If list does not exist
        """
        await self._verify_list_exists(list_id)
        return await self.store.get_siblings(list_id, None)

    async def get_children(self, parent_id: str) -> List[Task]:
        """
        Get all direct children of a parent task ordered by rank.

        Raises:
            TaskNotFoundError: If parent task does not exist
        """
        parent = await self._get_task_or_raise(parent_id)
        return await self.store.get_siblings(parent.list_id, parent.id)

    async def get_all_descendants(self, task_id: str) -> List[Task]:
        """
        Get every descendant of a task, shallowest first.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        await self._get_task_or_raise(task_id)
        descendants = await self.store.tasks_with_ancestor(task_id)
        return sorted(descendants, key=lambda task: (len(task.path), task.order))

    # ==============================================================================
    # UPDATE OPERATIONS
    # ==============================================================================

    async def update_task(
        self,
        task_id: str,
        title: str = UNSET,
        completed: bool = UNSET,
        collapsed: bool = UNSET,
        client_id: Optional[str] = UNSET,
    ) -> Task:
        """
        Merge new values into a task's non-structural fields.

        Only the arguments actually passed are merged, so ``client_id=None``
        clears the token. An empty or unchanged patch writes nothing and
        returns the current task.

        Args:
            task_id: ID of the task to update
            title: New title (if provided)
            completed: New completion flag (if provided)
            collapsed: New collapse flag (if provided)
            client_id: New correlation token, or None to clear it (if provided)

        Returns:
            Updated Task instance

        Raises:
            TaskNotFoundError: If task does not exist
            pydantic.ValidationError: If a new value is invalid
        """
        changes = {
            key: value for key, value in [
                ("title", title),
                ("completed", completed),
                ("collapsed", collapsed),
                ("client_id", client_id),
            ] if value is not UNSET
        }
        task = await self._get_task_or_raise(task_id)
        updated = Task.model_validate({**task.model_dump(), **changes})

        changed = self._changed_fields(task, changes)
        if not changed:
            logger.debug(f"Nothing to update for task {task_id}")
            return task

        logger.debug(f"Updating task {task_id}: fields={sorted(changed)}")

        batch = self.store.batch()
        batch.update_task(task_id, **changed)
        await batch.commit()

        logger.info(f"Updated task: id={task_id}, title='{updated.title}'")
        return updated

    async def rename_task(self, task_id: str, title: str) -> Task:
        """Change a task's title."""
        return await self.update_task(task_id, title=title)

    async def toggle_complete(self, task_id: str) -> Task:
        """
        Flip the completion flag of a task.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        task = await self._get_task_or_raise(task_id)
        return await self._set_flag(task, "completed", not task.completed)

    async def toggle_collapse(self, task_id: str) -> Task:
        """
        Flip the collapse flag of a task.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        task = await self._get_task_or_raise(task_id)
        return await self._set_flag(task, "collapsed", not task.collapsed)

    async def _set_flag(self, task: Task, field: str, value: bool) -> Task:
        batch = self.store.batch()
        batch.update_task(task.id, **{field: value})
        await batch.commit()

        logger.info(f"Task {field} toggled: task_id={task.id}, new_state={value}")
        return task.model_copy(update={field: value})

    # ==============================================================================
    # DELETE OPERATIONS
    # ==============================================================================

    async def delete_task_subtree(self, task_id: str) -> int:
        """
        Delete a task and all its descendants, then close the rank gap left
        among its former siblings.

        Args:
            task_id: ID of the task to delete

        Returns:
            Number of tasks deleted

        Raises:
            TaskNotFoundError: If task does not exist
        """
        logger.debug(f"Deleting task {task_id} and descendants")

        root = await self._get_task_or_raise(task_id)
        descendants = await self.store.tasks_with_ancestor(root.id)
        siblings = await self.store.get_siblings(root.list_id, root.parent_id)

        batch = self.store.batch()
        for descendant in descendants:
            batch.delete_task(descendant.id)
        batch.delete_task(root.id)
        batch.update_task_orders(ordering.close_gap(siblings, [root.id]))
        await batch.commit()

        deleted = 1 + len(descendants)
        logger.info(f"Deleted task: id={task_id}, title='{root.title}', descendants={len(descendants)}")
        return deleted

    # ==============================================================================
    # HIERARCHY OPERATIONS
    # ==============================================================================

    async def reorder_siblings(
        self,
        list_id: str,
        parent_id: Optional[str],
        ordered_ids: List[str],
    ) -> List[Task]:
        """
        Rank the sibling group of ``(list_id, parent_id)`` by ``ordered_ids``.

        Args:
            list_id: List of the sibling group
            parent_id: Parent of the sibling group (None for top level)
            ordered_ids: Sibling ids in their new order

        Returns:
            The sibling group in its new order

        Raises:
            InvalidOrderingError: If reorder validation is enabled and
                ``ordered_ids`` is not exactly the current sibling set
        """
        siblings = await self.store.get_siblings(list_id, parent_id)
        updates = ordering.reorder(
            siblings,
            ordered_ids,
            strict=self.nesting_config.validate_reorder,
        )

        batch = self.store.batch()
        batch.update_task_orders(updates)
        await batch.commit()

        logger.info(
            f"Reordered siblings: list_id={list_id}, parent_id={parent_id}, changed={len(updates)}"
        )
        reordered = [
            sibling.model_copy(update={"order": updates.get(sibling.id, sibling.order)})
            for sibling in siblings
        ]
        return ordering.sort_by_order(reordered)

    async def reparent_subtree(
        self,
        task_id: str,
        target_list_id: str,
        target_parent_id: Optional[str] = None,
        insert_index: Optional[int] = None,
        max_depth: Optional[int] = None,
    ) -> Task:
        """
        Move a task with its whole subtree to another container.

        The target may be in another list. The moved task is inserted at
        ``insert_index`` among its new siblings (appended when None), and the
        rank gap in its old container is closed.

        Args:
            task_id: ID of the subtree root to move
            target_list_id: List to move into
            target_parent_id: New parent (None for top level)
            insert_index: Position among the new siblings
            max_depth: Override of the configured maximum depth

        Returns:
            The moved task in its new position

        Raises:
            TaskNotFoundError: If the task or target parent does not exist
            TaskListNotFoundError: If the target list does not exist
            CycleError: If the target is the task itself or a descendant
            NestingLimitError: If the deepest moved task would exceed the bound
            InvalidMoveError: If the target parent lives in another list
        """
        logger.debug(
            f"Reparenting task {task_id}: target_list_id={target_list_id}, "
            f"target_parent_id={target_parent_id}, insert_index={insert_index}"
        )

        root = await self._get_task_or_raise(task_id)

        target_parent = None
        if target_parent_id is not None and target_parent_id != root.id:
            target_parent = await self.store.get_task(target_parent_id)

        descendants = await self.store.tasks_with_ancestor(root.id, list_id=root.list_id)
        hierarchy.validate_move(
            root,
            target_parent_id,
            target_parent,
            descendants,
            self._max_depth(max_depth),
        )

        await self._verify_list_exists(target_list_id)
        if target_parent is not None and target_parent.list_id != target_list_id:
            raise InvalidMoveError(
                f"Target parent {target_parent.id} is not in list {target_list_id}"
            )

        plan = hierarchy.plan_subtree_move(root, target_list_id, target_parent, descendants)

        new_siblings = await self.store.get_siblings(target_list_id, target_parent_id)
        position, new_orders = ordering.insert_at(new_siblings, root.id, insert_index)

        same_container = (root.list_id, root.parent_id) == (target_list_id, target_parent_id)
        old_orders: Dict[str, int] = {}
        if not same_container:
            old_siblings = await self.store.get_siblings(root.list_id, root.parent_id)
            old_orders = ordering.close_gap(old_siblings, [root.id])

        root_fields = {**plan.pop(root.id), "order": position}
        by_id = {descendant.id: descendant for descendant in descendants}

        batch = self.store.batch()
        batch.update_task(root.id, **self._changed_fields(root, root_fields))
        for descendant_id, fields in plan.items():
            batch.update_task(descendant_id, **self._changed_fields(by_id[descendant_id], fields))
        batch.update_task_orders({k: v for k, v in new_orders.items() if k != root.id})
        batch.update_task_orders(old_orders)
        await batch.commit()

        logger.info(
            f"Reparented task: id={task_id}, list_id={target_list_id}, "
            f"parent_id={target_parent_id}, order={position}, descendants={len(descendants)}"
        )
        return root.model_copy(update=root_fields)

    async def move_task_up(self, task_id: str) -> Optional[List[Task]]:
        """
        Swap a task with its previous sibling.

        Returns:
            The reordered sibling group, or None if the task is already first
        """
        return await self._swap_with_neighbour(task_id, -1)

    async def move_task_down(self, task_id: str) -> Optional[List[Task]]:
        """
        Swap a task with its next sibling.

        Returns:
            The reordered sibling group, or None if the task is already last
        """
        return await self._swap_with_neighbour(task_id, 1)

    async def _swap_with_neighbour(self, task_id: str, step: int) -> Optional[List[Task]]:
        task = await self._get_task_or_raise(task_id)
        siblings = await self.store.get_siblings(task.list_id, task.parent_id)
        ids = [sibling.id for sibling in siblings]

        index = ids.index(task.id)
        neighbour = index + step
        if neighbour < 0 or neighbour >= len(ids):
            return None

        ids[index], ids[neighbour] = ids[neighbour], ids[index]
        return await self.reorder_siblings(task.list_id, task.parent_id, ids)

    async def indent_task(self, task_id: str, max_depth: Optional[int] = None) -> Optional[Task]:
        """
        Make a task the last child of its previous sibling.

        Returns:
            The moved task, or None if the task has no previous sibling

        Raises:
            NestingLimitError: If the subtree would exceed the maximum depth
        """
        task = await self._get_task_or_raise(task_id)
        siblings = await self.store.get_siblings(task.list_id, task.parent_id)
        ids = [sibling.id for sibling in siblings]

        index = ids.index(task.id)
        if index == 0:
            return None

        new_parent = siblings[index - 1]
        return await self.reparent_subtree(task.id, task.list_id, new_parent.id, None, max_depth)

    async def outdent_task(self, task_id: str) -> Optional[Task]:
        """
        Move a task up one level, directly after its former parent.

        Returns:
            The moved task, or None if the task is already top-level
        """
        task = await self._get_task_or_raise(task_id)
        if task.parent_id is None:
            return None

        parent = await self._get_task_or_raise(task.parent_id)
        new_siblings = await self.store.get_siblings(task.list_id, parent.parent_id)
        ids = [sibling.id for sibling in new_siblings]
        insert_index = ids.index(parent.id) + 1 if parent.id in ids else len(ids)

        return await self.reparent_subtree(task.id, task.list_id, parent.parent_id, insert_index)
