"""
Database layer for TaskTree.

Provides SQLAlchemy ORM models, async engine/session management, and database
initialization. Every row is owned by exactly one user; the ``owner_id``
column is the per-user namespace all store queries are scoped to.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from tasktree.config.settings import DEFAULT_DATABASE_URL
from tasktree.logging_config import get_logger

logger = get_logger(__name__)

PATH_SEPARATOR = "/"


def encode_path(path: List[str]) -> str:
    """
    Encode an ancestor path for storage.

    Non-empty paths are wrapped in separators (``/a/b/``) so that every
    ancestor id can be matched with ``LIKE '%/<id>/%'``.

    Args:
        path: Ancestor ids, root first

    Returns:
        Stored path string (empty string for top-level tasks)
    """
    if not path:
        return ""
    return PATH_SEPARATOR + PATH_SEPARATOR.join(path) + PATH_SEPARATOR


def decode_path(stored: Optional[str]) -> List[str]:
    """Decode a stored path string back into a list of ancestor ids."""
    if not stored:
        return []
    return [part for part in stored.split(PATH_SEPARATOR) if part]


def path_contains_pattern(task_id: str) -> str:
    """LIKE pattern matching stored paths that contain ``task_id``."""
    return f"%{PATH_SEPARATOR}{task_id}{PATH_SEPARATOR}%"


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class ListORM(Base):
    """
    SQLAlchemy ORM model for task lists.

    Corresponds to the TaskList Pydantic model.
    """
    __tablename__ = "lists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    client_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    def __repr__(self) -> str:
        return f"<ListORM(id={self.id}, title={self.title}, order={self.order})>"


class TaskORM(Base):
    """
    SQLAlchemy ORM model for tasks.

    Corresponds to the Task Pydantic model. The ancestor path is stored in
    its encoded string form (see ``encode_path``).
    """
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_owner_container", "owner_id", "list_id", "parent_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    # Status flags
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    collapsed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Hierarchy
    list_id: Mapped[str] = mapped_column(String(36), nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    path: Mapped[str] = mapped_column(Text, nullable=False, default="")
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    client_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    def __repr__(self) -> str:
        return f"<TaskORM(id={self.id}, title={self.title}, order={self.order})>"


class DatabaseManager:
    """
    Manages database connections and session lifecycle.

    Handles async engine creation, session management, and database
    initialization for both production and testing scenarios.
    """

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL):
        """
        Initialize database manager with connection URL.

        Args:
            database_url: SQLAlchemy database URL (default: local SQLite file)
        """
        self.database_url = database_url
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    async def initialize(self) -> None:
        """
        Initialize the database engine and create tables.
        """
        try:
            logger.info(f"Initializing database: {self.database_url}")
            self.engine = create_async_engine(
                self.database_url,
                echo=False,  # Set to True for SQL query logging
            )

            self.session_maker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

    async def close(self) -> None:
        """
        Close the database engine and cleanup resources.
        """
        if self.engine:
            logger.info("Closing database connection")
            try:
                await self.engine.dispose()
                self.engine = None
                self.session_maker = None
                logger.info("Database connection closed successfully")
            except Exception as e:
                logger.error(f"Error closing database connection: {e}", exc_info=True)
                raise

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async database session with automatic transaction management.

        Yields:
            AsyncSession for database operations

        Example:
            async with db_manager.get_session() as session:
                result = await session.execute(select(TaskORM))
                tasks = result.scalars().all()
        """
        if not self.session_maker:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")

        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                logger.error(f"Database session error, rolling back: {e}", exc_info=True)
                await session.rollback()
                raise


async def init_database(database_url: str = DEFAULT_DATABASE_URL) -> DatabaseManager:
    """
    Create and initialize a database manager.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Initialized DatabaseManager instance
    """
    db_manager = DatabaseManager(database_url)
    await db_manager.initialize()
    return db_manager
