"""
Live change feed for TaskTree.

Delivers full snapshots (not diffs) of a user's lists or tasks to subscribers
every time a committed batch touches that collection. Each subscription runs a
background asyncio task guarded by a dirty flag: subscribing sets the flag so
the first snapshot is always delivered, commits set it again, and bursts of
commits collapse into a single snapshot.

The list feed and the task feed are independent; nothing orders their
emissions relative to each other or to a subscriber's own writes.
"""

import asyncio
import inspect
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from tasktree.database import DatabaseManager
from tasktree.logging_config import get_logger
from tasktree.models import Task, TaskList
from tasktree.services.store import LISTS, TASKS, EntityStore

logger = get_logger(__name__)

Snapshot = Union[List[TaskList], List[Task]]
SnapshotCallback = Callable[[Any], Union[None, Awaitable[None]]]


class Subscription:
    """
    Handle for one live subscription.

    Call ``unsubscribe()`` to stop deliveries; it is safe to call twice.
    """

    def __init__(
        self,
        feed: "ChangeFeed",
        owner_id: str,
        collection: str,
        callback: SnapshotCallback,
    ) -> None:
        self.feed = feed
        self.owner_id = owner_id
        self.collection = collection
        self.callback = callback
        self.deliveries = 0
        self.active = True
        self._dirty = asyncio.Event()
        self._dirty.set()
        self._task: asyncio.Task = asyncio.get_running_loop().create_task(self._run())

    def mark_dirty(self) -> None:
        """Request a fresh snapshot."""
        if self.active:
            self._dirty.set()

    async def _run(self) -> None:
        while self.active:
            await self._dirty.wait()
            self._dirty.clear()

            try:
                snapshot = await self.feed.load_snapshot(self.owner_id, self.collection)
            except Exception as e:
                logger.error(
                    f"Snapshot load failed: owner={self.owner_id}, collection={self.collection}: {e}",
                    exc_info=True
                )
                continue

            if not self.active:
                break

            try:
                result = self.callback(snapshot)
                if inspect.isawaitable(result):
                    await result
                self.deliveries += 1
            except Exception as e:
                logger.error(
                    f"Subscriber callback failed: owner={self.owner_id}, collection={self.collection}: {e}",
                    exc_info=True
                )

    def unsubscribe(self) -> None:
        """
        Stop deliveries and cancel the background task.

        Await ``wait_closed()`` afterwards to let a cancelled snapshot read
        release its session.
        """
        if not self.active:
            return
        self.active = False
        self._task.cancel()
        self.feed.remove(self)
        logger.debug(f"Unsubscribed: owner={self.owner_id}, collection={self.collection}")

    async def wait_closed(self) -> None:
        """Wait until the background task has finished after ``unsubscribe()``."""
        await asyncio.gather(self._task, return_exceptions=True)


class InactiveSubscription:
    """Handle returned when there is no user to subscribe for."""

    active = False
    deliveries = 0

    def unsubscribe(self) -> None:
        pass

    async def wait_closed(self) -> None:
        pass


class ChangeFeed:
    """
    Registry of live subscriptions, fed by post-commit notices.

    Acts as the ``ChangeNotifier`` of every ``EntityStore`` the Board creates.
    """

    def __init__(self, db_manager: DatabaseManager) -> None:
        """
        Initialize the feed.

        Args:
            db_manager: Database manager snapshots are read through
        """
        self.db_manager = db_manager
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def subscribe(self, owner_id: str, collection: str, callback: SnapshotCallback) -> Subscription:
        """
        Subscribe to snapshots of one collection of one owner.

        Must be called from within a running event loop.

        Args:
            owner_id: Owning user
            collection: ``"lists"`` or ``"tasks"``
            callback: Called with each snapshot; may be a coroutine function

        Returns:
            Subscription handle
        """
        if collection not in (LISTS, TASKS):
            raise ValueError(f"Unknown collection: {collection}")

        subscription = Subscription(self, owner_id, collection, callback)
        self._subscriptions.setdefault(owner_id, []).append(subscription)
        logger.debug(f"Subscribed: owner={owner_id}, collection={collection}")
        return subscription

    def subscribe_lists(self, owner_id: str, callback: SnapshotCallback) -> Subscription:
        return self.subscribe(owner_id, LISTS, callback)

    def subscribe_tasks(self, owner_id: str, callback: SnapshotCallback) -> Subscription:
        return self.subscribe(owner_id, TASKS, callback)

    def remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.owner_id, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._subscriptions.pop(subscription.owner_id, None)

    def subscription_count(self, owner_id: Optional[str] = None) -> int:
        if owner_id is not None:
            return len(self._subscriptions.get(owner_id, []))
        return sum(len(subscriptions) for subscriptions in self._subscriptions.values())

    def notify(self, owner_id: str, collections: Iterable[str]) -> None:
        """Mark subscriptions of ``owner_id`` on the changed collections dirty."""
        changed = set(collections)
        for subscription in list(self._subscriptions.get(owner_id, [])):
            if subscription.collection in changed:
                subscription.mark_dirty()

    async def load_snapshot(self, owner_id: str, collection: str) -> Snapshot:
        """Read the current full collection of ``owner_id``."""
        async with self.db_manager.get_session() as session:
            store = EntityStore(session, owner_id)
            if collection == LISTS:
                return await store.all_lists()
            return await store.all_tasks()

    async def iterate(self, owner_id: str, collection: str) -> AsyncIterator[Snapshot]:
        """
        Async generator of snapshots.

        Each call starts a fresh subscription (the first item is the current
        state); closing the generator unsubscribes.

        Example:
            async for lists in feed.iterate(user_id, "lists"):
                render(lists)
        """
        queue: asyncio.Queue = asyncio.Queue()
        subscription = self.subscribe(owner_id, collection, queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            subscription.unsubscribe()

    async def close(self) -> None:
        """Cancel every subscription and wait for their tasks to finish."""
        closing = [
            subscription
            for subscriptions in list(self._subscriptions.values())
            for subscription in subscriptions
        ]
        for subscription in closing:
            subscription.unsubscribe()
        for subscription in closing:
            await subscription.wait_closed()
        logger.debug(f"Change feed closed: subscriptions={len(closing)}")
