"""
List service for TaskTree.

Provides creation, renaming, reordering and cascading deletion of a user's
task lists, plus creation of the default lists on first use.
"""

from typing import List, Optional

from tasktree.config.nesting_config import NestingConfig
from tasktree.logging_config import get_logger
from tasktree.models import TaskList
from tasktree.services import ordering
from tasktree.services.errors import TaskListNotFoundError
from tasktree.services.store import EntityStore

logger = get_logger(__name__)


class ListService:
    """
    Service layer for task list management.

    All of an owner's lists form one sibling group whose ``order`` is kept
    dense by every operation here.
    """

    # Default lists to create on first run
    DEFAULT_LISTS = ["Work", "Personal"]

    def __init__(
        self,
        store: EntityStore,
        nesting_config: Optional[NestingConfig] = None
    ) -> None:
        """
        Initialize the list service.

        Args:
            store: Entity store scoped to the acting user
            nesting_config: Reorder validation settings
        """
        self.store = store
        self.nesting_config = nesting_config or NestingConfig()

    async def _get_list_or_raise(self, list_id: str) -> TaskList:
        task_list = await self.store.get_list(list_id)
        if task_list is None:
            raise TaskListNotFoundError(f"Task list with id {list_id} not found")
        return task_list

    async def create_list(
        self,
        title: str,
        order: Optional[int] = None,
        client_id: Optional[str] = None,
    ) -> TaskList:
        """
        Create a new task list.

        Args:
            title: Title of the list to create
            order: Optional position among existing lists (appended if None)
            client_id: Optional caller-chosen correlation token

        Returns:
            Created TaskList model
        """
        logger.debug(f"Creating list: title='{title}', order={order}")

        existing = await self.store.all_lists()
        task_list = TaskList(title=title, client_id=client_id)
        position, orders = ordering.insert_at(existing, task_list.id, order)
        task_list.order = position

        batch = self.store.batch()
        batch.insert_list(task_list)
        batch.update_list_orders({k: v for k, v in orders.items() if k != task_list.id})
        await batch.commit()

        logger.info(f"Created list: id={task_list.id}, title='{title}', order={position}")
        return task_list

    async def get_all_lists(self) -> List[TaskList]:
        """Retrieve all task lists ordered by rank."""
        return await self.store.all_lists()

    async def get_list_by_id(self, list_id: str) -> Optional[TaskList]:
        """Retrieve a specific task list by ID, or None if not found."""
        return await self.store.get_list(list_id)

    async def rename_list(self, list_id: str, title: str) -> TaskList:
        """
        Update a task list's title.

        Raises:
            TaskListNotFoundError: If the list does not exist
        """
        logger.debug(f"Renaming list {list_id}: title='{title}'")

        task_list = await self._get_list_or_raise(list_id)
        renamed = TaskList.model_validate({**task_list.model_dump(), "title": title})

        batch = self.store.batch()
        batch.update_list(list_id, title=title)
        await batch.commit()

        logger.info(f"Renamed list: id={list_id}, '{task_list.title}' -> '{title}'")
        return renamed

    async def delete_list(self, list_id: str) -> int:
        """
        Delete a task list and all its tasks (cascade).

        Args:
            list_id: ID of the list to delete

        Returns:
            Number of tasks deleted with the list

        Raises:
            TaskListNotFoundError: If the list does not exist
        """
        logger.debug(f"Deleting list {list_id}")

        task_list = await self._get_list_or_raise(list_id)
        tasks = await self.store.find_tasks(list_id=list_id)
        lists = await self.store.all_lists()

        batch = self.store.batch()
        batch.delete_list(list_id)
        for task in tasks:
            batch.delete_task(task.id)
        batch.update_list_orders(ordering.close_gap(lists, [list_id]))
        await batch.commit()

        logger.info(f"Deleted list: id={list_id}, title='{task_list.title}', tasks={len(tasks)}")
        return len(tasks)

    async def reorder_lists(self, ordered_ids: List[str]) -> List[TaskList]:
        """
        Rank the owner's lists by ``ordered_ids``.

        Returns:
            The lists in their new order

        Raises:
            InvalidOrderingError: If reorder validation is enabled and
                ``ordered_ids`` is not exactly the current set of lists
        """
        lists = await self.store.all_lists()
        updates = ordering.reorder(
            lists,
            ordered_ids,
            strict=self.nesting_config.validate_reorder,
        )

        batch = self.store.batch()
        batch.update_list_orders(updates)
        await batch.commit()

        logger.info(f"Reordered lists: changed={len(updates)}")
        reordered = [
            task_list.model_copy(update={"order": updates.get(task_list.id, task_list.order)})
            for task_list in lists
        ]
        return ordering.sort_by_order(reordered)

    async def ensure_default_lists(self) -> List[TaskList]:
        """
        Ensure the default lists exist.

        Creates any default list whose title is missing, typically on the
        first sign-in of a user.

        Returns:
            List of all task lists after ensuring defaults exist
        """
        existing_titles = {task_list.title for task_list in await self.store.all_lists()}

        created = []
        for title in self.DEFAULT_LISTS:
            if title not in existing_titles:
                await self.create_list(title)
                created.append(title)

        if created:
            logger.info(f"Created default lists: {created}")
        else:
            logger.debug("All default lists already exist")

        return await self.store.all_lists()
