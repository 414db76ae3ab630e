"""
Pytest configuration and fixtures for TaskTree tests.

Provides database fixtures, services bound to a test user, and factories for
building in-memory tasks and lists.
"""

import pytest
import pytest_asyncio

from tasktree.config.nesting_config import NestingConfig
from tasktree.database import DatabaseManager
from tasktree.services.list_service import ListService
from tasktree.services.store import EntityStore
from tasktree.services.task_service import TaskService
from tests.helpers.factories import make_list, make_task


@pytest_asyncio.fixture
async def db_manager():
    """
    Create an in-memory SQLite database for testing.

    Yields:
        DatabaseManager instance with in-memory database

    Example:
        async def test_something(db_manager):
            async with db_manager.get_session() as session:
                # Test database operations
    """
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.initialize()

    yield manager

    await manager.close()


@pytest_asyncio.fixture
async def file_db_manager(tmp_path):
    """
    Create a file-backed SQLite database for tests that open several
    sessions at once (change feed, board).
    """
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'tasktree.db'}")
    await manager.initialize()

    yield manager

    await manager.close()


@pytest_asyncio.fixture
async def db_session(db_manager):
    """Provide a database session for tests."""
    async with db_manager.get_session() as session:
        yield session


@pytest.fixture
def user_id():
    """Identifier of the acting test user."""
    return "user-alice"


@pytest.fixture
def other_user_id():
    """Identifier of a second user whose data must stay invisible."""
    return "user-bob"


@pytest.fixture
def nesting_config():
    """Default nesting configuration (max depth 4, reorder validation on)."""
    return NestingConfig()


@pytest.fixture
def store(db_session, user_id):
    """Entity store scoped to the test user."""
    return EntityStore(db_session, user_id)


@pytest.fixture
def task_service(store, nesting_config):
    return TaskService(store, nesting_config)


@pytest.fixture
def list_service(store, nesting_config):
    return ListService(store, nesting_config)


@pytest_asyncio.fixture
async def work_list(list_service):
    """A persisted list titled "Work" at order 0."""
    return await list_service.create_list("Work")


@pytest_asyncio.fixture
async def hierarchy(task_service, work_list):
    """
    Persisted sample hierarchy in the Work list.

    Structure::

        A (depth 1)
          A1 (depth 2)
            A1a (depth 3)
        B (depth 1)
        X (depth 1)
          X1 (depth 2)
            C (depth 3)

    Returns:
        Dict of title to Task
    """
    a = await task_service.create_root_task(work_list.id, "A")
    a1 = await task_service.create_child_task(a.id, "A1")
    a1a = await task_service.create_child_task(a1.id, "A1a")
    b = await task_service.create_root_task(work_list.id, "B")
    x = await task_service.create_root_task(work_list.id, "X")
    x1 = await task_service.create_child_task(x.id, "X1")
    c = await task_service.create_child_task(x1.id, "C")
    return {"A": a, "A1": a1, "A1a": a1a, "B": b, "X": x, "X1": x1, "C": c}


@pytest.fixture
def task_factory():
    """Factory fixture returning ``make_task``."""
    return make_task


@pytest.fixture
def list_factory():
    """Factory fixture returning ``make_list``."""
    return make_list
