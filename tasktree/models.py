"""
Pydantic models for TaskTree.

Defines the two entity kinds kept per user: ordered task lists and
hierarchical tasks carrying a materialized ancestor path.
"""

from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def generate_id() -> str:
    """Generate a new unique entity identifier."""
    return str(uuid4())


class TaskList(BaseModel):
    """
    Represents a task list (e.g., Work, Personal).

    Lists owned by one user form a single sibling group ranked by ``order``.
    """

    id: str = Field(default_factory=generate_id, description="Unique identifier for the list")
    title: str = Field(..., min_length=1, max_length=100, description="List title")
    order: int = Field(default=0, ge=0, description="Rank among the owner's lists")
    client_id: Optional[str] = Field(default=None, description="Caller-chosen correlation token")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "title": "Work",
                "order": 0,
            }
        }
    )


class Task(BaseModel):
    """
    Represents a single task with support for hierarchical nesting.

    ``path`` lists the ancestor ids from the root down to the immediate
    parent, excluding the task itself. A top-level task has an empty path
    and no parent; its depth is 1.
    """

    id: str = Field(default_factory=generate_id, description="Unique identifier for the task")
    title: str = Field(..., min_length=1, max_length=500, description="Task title")

    # Status flags
    completed: bool = Field(default=False, description="Whether the task is completed")
    collapsed: bool = Field(default=False, description="Whether the task's children are hidden")

    # Hierarchy
    list_id: str = Field(..., description="ID of the list this task belongs to")
    parent_id: Optional[str] = Field(default=None, description="Parent task ID for nesting")
    path: List[str] = Field(default_factory=list, description="Ancestor task IDs, root first")
    order: int = Field(default=0, ge=0, description="Rank among siblings")

    client_id: Optional[str] = Field(default=None, description="Caller-chosen correlation token")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174001",
                "title": "Define scope",
                "completed": False,
                "collapsed": False,
                "list_id": "123e4567-e89b-12d3-a456-426614174000",
                "parent_id": "123e4567-e89b-12d3-a456-426614174002",
                "path": ["123e4567-e89b-12d3-a456-426614174002"],
                "order": 0,
            }
        }
    )

    @model_validator(mode='after')
    def validate_path_consistency(self) -> 'Task':
        """
        Validate that parent_id, path and id agree with each other.

        Returns:
            The validated task instance

        Raises:
            ValueError: If the parent is not the last path entry, or the
                task appears in its own path
        """
        if self.parent_id is None and self.path:
            raise ValueError("Top-level tasks must have an empty path")

        if self.parent_id is not None and (not self.path or self.path[-1] != self.parent_id):
            raise ValueError("parent_id must be the last entry of path")

        if self.id in self.path:
            raise ValueError("A task cannot be its own ancestor")

        return self

    @property
    def depth(self) -> int:
        """Depth of the task; top-level tasks are depth 1."""
        return len(self.path) + 1

    def child_path(self) -> List[str]:
        """Path a direct child of this task carries."""
        return [*self.path, self.id]
