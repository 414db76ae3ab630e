"""
Entity store for TaskTree.

Wraps an async database session scoped to one owner. Reads return pydantic
models; writes are collected in a ``WriteBatch`` and committed together in a
single transaction, so a higher-level operation either lands completely or not
at all. After a successful commit the store tells its notifier which
collections changed.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tasktree.database import ListORM, TaskORM, decode_path, encode_path, path_contains_pattern
from tasktree.logging_config import get_logger
from tasktree.models import Task, TaskList

logger = get_logger(__name__)

LISTS = "lists"
TASKS = "tasks"

_TASK_FIELDS = {"title", "completed", "collapsed", "list_id", "parent_id", "path", "order", "client_id"}
_LIST_FIELDS = {"title", "order", "client_id"}


class ChangeNotifier(Protocol):
    """Receives a notice after each committed batch."""

    def notify(self, owner_id: str, collections: Iterable[str]) -> None:
        ...


def task_from_orm(task_orm: TaskORM) -> Task:
    """Convert a TaskORM row to a Task model."""
    return Task.model_validate(
        {
            "id": task_orm.id,
            "title": task_orm.title,
            "completed": task_orm.completed,
            "collapsed": task_orm.collapsed,
            "list_id": task_orm.list_id,
            "parent_id": task_orm.parent_id,
            "path": decode_path(task_orm.path),
            "order": task_orm.order,
            "client_id": task_orm.client_id,
        }
    )


def list_from_orm(list_orm: ListORM) -> TaskList:
    """Convert a ListORM row to a TaskList model."""
    return TaskList(
        id=list_orm.id,
        title=list_orm.title,
        order=list_orm.order,
        client_id=list_orm.client_id,
    )


def _check_fields(fields: Dict[str, Any], allowed: Set[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {sorted(unknown)}")


class WriteBatch:
    """
    Collects writes and applies them atomically.

    Operations are applied in the order they were added. Nothing touches the
    database until ``commit()``.
    """

    def __init__(self, store: "EntityStore") -> None:
        self._store = store
        self._operations: List[Tuple[str, str, Any]] = []
        self._collections: Set[str] = set()
        self.committed = False

    def __len__(self) -> int:
        return len(self._operations)

    def insert_task(self, task: Task) -> None:
        self._operations.append(("insert", TASKS, task))
        self._collections.add(TASKS)

    def insert_list(self, task_list: TaskList) -> None:
        self._operations.append(("insert", LISTS, task_list))
        self._collections.add(LISTS)

    def update_task(self, task_id: str, **fields: Any) -> None:
        """Queue a field-level partial update of a task."""
        _check_fields(fields, _TASK_FIELDS)
        if fields:
            self._operations.append(("update", TASKS, (task_id, fields)))
            self._collections.add(TASKS)

    def update_list(self, list_id: str, **fields: Any) -> None:
        """Queue a field-level partial update of a list."""
        _check_fields(fields, _LIST_FIELDS)
        if fields:
            self._operations.append(("update", LISTS, (list_id, fields)))
            self._collections.add(LISTS)

    def update_task_orders(self, orders: Dict[str, int]) -> None:
        for task_id, order in orders.items():
            self.update_task(task_id, order=order)

    def update_list_orders(self, orders: Dict[str, int]) -> None:
        for list_id, order in orders.items():
            self.update_list(list_id, order=order)

    def delete_task(self, task_id: str) -> None:
        self._operations.append(("delete", TASKS, task_id))
        self._collections.add(TASKS)

    def delete_list(self, list_id: str) -> None:
        self._operations.append(("delete", LISTS, list_id))
        self._collections.add(LISTS)

    async def commit(self) -> None:
        """
        Apply every queued write in one transaction.

        Raises:
            RuntimeError: If the batch was already committed
            Exception: Any storage error; the transaction is rolled back first
        """
        if self.committed:
            raise RuntimeError("WriteBatch already committed")
        self.committed = True

        if not self._operations:
            return

        session = self._store.session
        owner_id = self._store.owner_id
        try:
            for action, collection, payload in self._operations:
                await self._apply(session, owner_id, action, collection, payload)
            await session.commit()
        except Exception as e:
            logger.error(f"Batch commit failed for owner {owner_id}, rolling back: {e}", exc_info=True)
            await session.rollback()
            raise

        logger.debug(f"Committed batch: owner={owner_id}, writes={len(self._operations)}")
        self._store.notify_committed(self._collections)

    @staticmethod
    async def _apply(session: AsyncSession, owner_id: str, action: str, collection: str, payload: Any) -> None:
        model = TaskORM if collection == TASKS else ListORM

        if action == "insert":
            if collection == TASKS:
                session.add(TaskORM(
                    id=payload.id,
                    owner_id=owner_id,
                    title=payload.title,
                    completed=payload.completed,
                    collapsed=payload.collapsed,
                    list_id=payload.list_id,
                    parent_id=payload.parent_id,
                    path=encode_path(payload.path),
                    order=payload.order,
                    client_id=payload.client_id,
                ))
            else:
                session.add(ListORM(
                    id=payload.id,
                    owner_id=owner_id,
                    title=payload.title,
                    order=payload.order,
                    client_id=payload.client_id,
                ))
        elif action == "update":
            entity_id, fields = payload
            values = dict(fields)
            if "path" in values:
                values["path"] = encode_path(values["path"])
            await session.execute(
                update(model)
                .where(model.id == entity_id, model.owner_id == owner_id)
                .values(**values)
            )
        elif action == "delete":
            await session.execute(
                delete(model).where(model.id == payload, model.owner_id == owner_id)
            )
        else:
            raise ValueError(f"Unknown batch action: {action}")


class EntityStore:
    """
    Keyed storage of lists and tasks for a single owner.

    All queries are scoped to ``owner_id``; entities of other owners are
    invisible through this store.
    """

    def __init__(
        self,
        session: AsyncSession,
        owner_id: str,
        notifier: Optional[ChangeNotifier] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            session: Active async database session
            owner_id: Identifier of the owning user
            notifier: Optional receiver of post-commit change notices
        """
        self.session = session
        self.owner_id = owner_id
        self.notifier = notifier

    def batch(self) -> WriteBatch:
        """Start a new atomic write batch."""
        return WriteBatch(self)

    def notify_committed(self, collections: Iterable[str]) -> None:
        if self.notifier is not None:
            self.notifier.notify(self.owner_id, collections)

    # ==============================================================================
    # TASK QUERIES
    # ==============================================================================

    def _task_query(self):
        return (
            select(TaskORM)
            .where(TaskORM.owner_id == self.owner_id)
            .execution_options(populate_existing=True)
        )

    def _list_query(self):
        return (
            select(ListORM)
            .where(ListORM.owner_id == self.owner_id)
            .execution_options(populate_existing=True)
        )

    async def get_task(self, task_id: str) -> Optional[Task]:
        """Get a task by id, or None if it does not exist."""
        result = await self.session.execute(self._task_query().where(TaskORM.id == task_id))
        task_orm = result.scalar_one_or_none()
        return task_from_orm(task_orm) if task_orm else None

    async def find_tasks(self, **filters: Any) -> List[Task]:
        """
        Get all tasks whose fields equal the given values, sorted by order.

        A filter value of None matches NULL. ``path`` cannot be filtered on
        here; use ``tasks_with_ancestor``.

        Example:
            siblings = await store.find_tasks(list_id=list_id, parent_id=None)
        """
        _check_fields(filters, _TASK_FIELDS - {"path"})
        query = self._task_query()
        for field, value in filters.items():
            column = getattr(TaskORM, field)
            query = query.where(column.is_(None) if value is None else column == value)

        result = await self.session.execute(query.order_by(TaskORM.order))
        return [task_from_orm(task_orm) for task_orm in result.scalars().all()]

    async def get_siblings(self, list_id: str, parent_id: Optional[str]) -> List[Task]:
        """Get the sibling group of container ``(list_id, parent_id)``."""
        return await self.find_tasks(list_id=list_id, parent_id=parent_id)

    async def tasks_with_ancestor(self, task_id: str, list_id: Optional[str] = None) -> List[Task]:
        """
        Ancestor-containment query: all tasks whose path contains ``task_id``.

        Args:
            task_id: Ancestor id to look for
            list_id: Optionally restrict the result to one list

        Returns:
            Descendant tasks, in no particular hierarchical order
        """
        query = self._task_query().where(TaskORM.path.like(path_contains_pattern(task_id)))
        if list_id is not None:
            query = query.where(TaskORM.list_id == list_id)

        result = await self.session.execute(query)
        tasks = [task_from_orm(task_orm) for task_orm in result.scalars().all()]
        # Guard against LIKE wildcards inside ids
        return [task for task in tasks if task_id in task.path]

    async def all_tasks(self) -> List[Task]:
        """Get every task of the owner, sorted by list and order."""
        result = await self.session.execute(
            self._task_query().order_by(TaskORM.list_id, TaskORM.order)
        )
        return [task_from_orm(task_orm) for task_orm in result.scalars().all()]

    # ==============================================================================
    # LIST QUERIES
    # ==============================================================================

    async def get_list(self, list_id: str) -> Optional[TaskList]:
        """Get a list by id, or None if it does not exist."""
        result = await self.session.execute(self._list_query().where(ListORM.id == list_id))
        list_orm = result.scalar_one_or_none()
        return list_from_orm(list_orm) if list_orm else None

    async def find_lists(self, **filters: Any) -> List[TaskList]:
        """Get all lists whose fields equal the given values, sorted by order."""
        _check_fields(filters, _LIST_FIELDS)
        query = self._list_query()
        for field, value in filters.items():
            column = getattr(ListORM, field)
            query = query.where(column.is_(None) if value is None else column == value)

        result = await self.session.execute(query.order_by(ListORM.order))
        return [list_from_orm(list_orm) for list_orm in result.scalars().all()]

    async def all_lists(self) -> List[TaskList]:
        """Get every list of the owner, sorted by order."""
        return await self.find_lists()

    async def count_lists(self) -> int:
        """Get the number of lists the owner has."""
        result = await self.session.execute(
            select(func.count(ListORM.id)).where(ListORM.owner_id == self.owner_id)
        )
        return result.scalar_one()
