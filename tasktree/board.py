"""
Board: the mutation entry point of TaskTree.

Every operation takes the acting user's id first. With no user (signed out)
the operation does nothing and returns None. Each call opens its own session,
runs one service operation against an ``EntityStore`` scoped to that user,
and lets the store notify the change feed after its batch commits.

Rejected mutations (missing entities, nesting limit, cycles, invalid targets
or arrangements) are silent no-ops for the caller: the rejection is logged
with its reason code and the method returns None.
"""

from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, TypeVar, Union

from tasktree.config.nesting_config import NestingConfig
from tasktree.config.settings import CONFIG_DIR, DEFAULT_DATABASE_URL, Config
from tasktree.database import DatabaseManager
from tasktree.logging_config import get_logger
from tasktree.models import Task, TaskList
from tasktree.services.change_feed import (
    ChangeFeed,
    InactiveSubscription,
    SnapshotCallback,
    Subscription,
)
from tasktree.services.errors import MutationRejected
from tasktree.services.list_service import ListService
from tasktree.services.store import LISTS, TASKS, EntityStore
from tasktree.services.task_service import TaskService

logger = get_logger(__name__)

T = TypeVar("T")
Operation = Callable[[TaskService, ListService], Awaitable[T]]


class Board:
    """
    Facade over the task and list services for signed-in users.

    Example:
        board = await Board.open()
        lists = await board.ensure_default_lists(user_id)
        task = await board.create_root_task(user_id, lists[0].id, "Buy milk")
        await board.close()
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        nesting_config: Optional[NestingConfig] = None,
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        """
        Initialize the board.

        Args:
            db_manager: Initialized database manager
            nesting_config: Depth bound and reorder validation settings
            feed: Change feed to notify (one is created if omitted)
        """
        self.db_manager = db_manager
        self.nesting_config = nesting_config or NestingConfig()
        self.feed = feed or ChangeFeed(db_manager)

    @classmethod
    async def open(
        cls,
        database_url: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> "Board":
        """
        Create a board from configuration and initialize its database.

        Args:
            database_url: Overrides the configured database URL
            config: Configuration to read (default: ~/.tasktree/config.ini)

        Returns:
            Ready-to-use Board
        """
        config = config or Config()
        url = database_url or config.get_database_config()["url"]
        if url == DEFAULT_DATABASE_URL:
            CONFIG_DIR.mkdir(parents=True, exist_ok=True)

        db_manager = DatabaseManager(url)
        await db_manager.initialize()
        return cls(db_manager, config.get_nesting_config())

    async def close(self) -> None:
        """Stop all subscriptions and release the database."""
        await self.feed.close()
        await self.db_manager.close()

    def set_max_depth(self, max_depth: int) -> None:
        """
        Change the nesting bound for subsequent operations.

        Existing tasks deeper than the new bound are left alone.

        Raises:
            pydantic.ValidationError: If ``max_depth`` is outside 1..10
        """
        self.nesting_config.max_depth = max_depth
        logger.info(f"Maximum nesting depth set to {max_depth}")

    async def _run(self, user_id: Optional[str], name: str, operation: Operation) -> Optional[T]:
        if user_id is None:
            logger.debug(f"Ignoring {name}: no signed-in user")
            return None

        async with self.db_manager.get_session() as session:
            store = EntityStore(session, user_id, notifier=self.feed)
            task_service = TaskService(store, self.nesting_config)
            list_service = ListService(store, self.nesting_config)
            try:
                return await operation(task_service, list_service)
            except MutationRejected as e:
                logger.info(f"Rejected {name} for user {user_id}: reason={e.reason.value}: {e}")
                return None

    # ==============================================================================
    # TASK MUTATIONS
    # ==============================================================================

    async def create_root_task(
        self,
        user_id: Optional[str],
        list_id: str,
        title: str,
        client_id: Optional[str] = None,
    ) -> Optional[Task]:
        return await self._run(
            user_id, "create_root_task",
            lambda tasks, lists: tasks.create_root_task(list_id, title, client_id),
        )

    async def create_child_task(
        self,
        user_id: Optional[str],
        parent_id: str,
        title: str,
        client_id: Optional[str] = None,
        max_depth: Optional[int] = None,
    ) -> Optional[Task]:
        return await self._run(
            user_id, "create_child_task",
            lambda tasks, lists: tasks.create_child_task(parent_id, title, client_id, max_depth),
        )

    async def update_task(self, user_id: Optional[str], task_id: str, **fields: Any) -> Optional[Task]:
        """
        Update title, completed, collapsed or client_id of a task.

        Only the keyword arguments passed are merged; with none the task is
        returned unchanged.
        """
        return await self._run(
            user_id, "update_task",
            lambda tasks, lists: tasks.update_task(task_id, **fields),
        )

    async def rename_task(self, user_id: Optional[str], task_id: str, title: str) -> Optional[Task]:
        return await self._run(
            user_id, "rename_task",
            lambda tasks, lists: tasks.rename_task(task_id, title),
        )

    async def toggle_complete(self, user_id: Optional[str], task_id: str) -> Optional[Task]:
        return await self._run(
            user_id, "toggle_complete",
            lambda tasks, lists: tasks.toggle_complete(task_id),
        )

    async def toggle_collapse(self, user_id: Optional[str], task_id: str) -> Optional[Task]:
        return await self._run(
            user_id, "toggle_collapse",
            lambda tasks, lists: tasks.toggle_collapse(task_id),
        )

    async def delete_task_subtree(self, user_id: Optional[str], task_id: str) -> Optional[int]:
        """Delete a task and its descendants; returns the number deleted."""
        return await self._run(
            user_id, "delete_task_subtree",
            lambda tasks, lists: tasks.delete_task_subtree(task_id),
        )

    async def reorder_siblings(
        self,
        user_id: Optional[str],
        list_id: str,
        parent_id: Optional[str],
        ordered_ids: List[str],
    ) -> Optional[List[Task]]:
        return await self._run(
            user_id, "reorder_siblings",
            lambda tasks, lists: tasks.reorder_siblings(list_id, parent_id, ordered_ids),
        )

    async def reparent_subtree(
        self,
        user_id: Optional[str],
        task_id: str,
        target_list_id: str,
        target_parent_id: Optional[str] = None,
        insert_index: Optional[int] = None,
        max_depth: Optional[int] = None,
    ) -> Optional[Task]:
        """
        Move a subtree to another container, possibly in another list.

        Returns:
            The moved task, or None if there is no user or the move was rejected
        """
        return await self._run(
            user_id, "reparent_subtree",
            lambda tasks, lists: tasks.reparent_subtree(
                task_id, target_list_id, target_parent_id, insert_index, max_depth
            ),
        )

    async def move_task_up(self, user_id: Optional[str], task_id: str) -> Optional[List[Task]]:
        return await self._run(user_id, "move_task_up", lambda tasks, lists: tasks.move_task_up(task_id))

    async def move_task_down(self, user_id: Optional[str], task_id: str) -> Optional[List[Task]]:
        return await self._run(user_id, "move_task_down", lambda tasks, lists: tasks.move_task_down(task_id))

    async def indent_task(
        self,
        user_id: Optional[str],
        task_id: str,
        max_depth: Optional[int] = None,
    ) -> Optional[Task]:
        return await self._run(
            user_id, "indent_task",
            lambda tasks, lists: tasks.indent_task(task_id, max_depth),
        )

    async def outdent_task(self, user_id: Optional[str], task_id: str) -> Optional[Task]:
        return await self._run(user_id, "outdent_task", lambda tasks, lists: tasks.outdent_task(task_id))

    # ==============================================================================
    # LIST MUTATIONS
    # ==============================================================================

    async def create_list(
        self,
        user_id: Optional[str],
        title: str,
        order: Optional[int] = None,
        client_id: Optional[str] = None,
    ) -> Optional[TaskList]:
        return await self._run(
            user_id, "create_list",
            lambda tasks, lists: lists.create_list(title, order, client_id),
        )

    async def rename_list(self, user_id: Optional[str], list_id: str, title: str) -> Optional[TaskList]:
        return await self._run(
            user_id, "rename_list",
            lambda tasks, lists: lists.rename_list(list_id, title),
        )

    async def delete_list(self, user_id: Optional[str], list_id: str) -> Optional[int]:
        """Delete a list with all its tasks; returns the number of tasks deleted."""
        return await self._run(user_id, "delete_list", lambda tasks, lists: lists.delete_list(list_id))

    async def reorder_lists(self, user_id: Optional[str], ordered_ids: List[str]) -> Optional[List[TaskList]]:
        return await self._run(
            user_id, "reorder_lists",
            lambda tasks, lists: lists.reorder_lists(ordered_ids),
        )

    async def ensure_default_lists(self, user_id: Optional[str]) -> Optional[List[TaskList]]:
        return await self._run(
            user_id, "ensure_default_lists",
            lambda tasks, lists: lists.ensure_default_lists(),
        )

    # ==============================================================================
    # READS
    # ==============================================================================

    async def get_lists(self, user_id: Optional[str]) -> Optional[List[TaskList]]:
        return await self._run(user_id, "get_lists", lambda tasks, lists: lists.get_all_lists())

    async def get_tasks(self, user_id: Optional[str], list_id: Optional[str] = None) -> Optional[List[Task]]:
        """Tasks of one list in rank order, or every task of the user when ``list_id`` is None."""
        if list_id is None:
            return await self._run(user_id, "get_tasks", lambda tasks, lists: tasks.store.all_tasks())
        return await self._run(user_id, "get_tasks", lambda tasks, lists: tasks.get_tasks_for_list(list_id))

    # ==============================================================================
    # SUBSCRIPTIONS
    # ==============================================================================

    def subscribe_lists(
        self,
        user_id: Optional[str],
        callback: SnapshotCallback,
    ) -> Union[Subscription, InactiveSubscription]:
        """
        Receive the user's full list snapshot now and after every list change.

        Must be called from within a running event loop.
        """
        if user_id is None:
            return InactiveSubscription()
        return self.feed.subscribe(user_id, LISTS, callback)

    def subscribe_tasks(
        self,
        user_id: Optional[str],
        callback: SnapshotCallback,
    ) -> Union[Subscription, InactiveSubscription]:
        """
        Receive the user's full task snapshot now and after every task change.

        Must be called from within a running event loop.
        """
        if user_id is None:
            return InactiveSubscription()
        return self.feed.subscribe(user_id, TASKS, callback)

    def iter_lists(self, user_id: Optional[str]) -> AsyncIterator[List[TaskList]]:
        """Async generator of list snapshots; yields nothing without a user."""
        if user_id is None:
            return _no_snapshots()
        return self.feed.iterate(user_id, LISTS)

    def iter_tasks(self, user_id: Optional[str]) -> AsyncIterator[List[Task]]:
        """Async generator of task snapshots; yields nothing without a user."""
        if user_id is None:
            return _no_snapshots()
        return self.feed.iterate(user_id, TASKS)


async def _no_snapshots() -> AsyncIterator[Any]:
    return
    yield
