"""TaskTree: per-user ordered task lists with nested tasks and live snapshots."""

from tasktree.board import Board
from tasktree.models import Task, TaskList

__version__ = "0.1.0"

__all__ = ["Board", "Task", "TaskList", "__version__"]
