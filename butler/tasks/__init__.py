"""Staff task management."""

from .repository import InMemoryTaskRepository, PostgresTaskRepository, TaskRepository
from .schemas import CreateTaskInput, Task, TaskList
from .service import TaskService

__all__ = [
    "CreateTaskInput",
    "InMemoryTaskRepository",
    "PostgresTaskRepository",
    "Task",
    "TaskList",
    "TaskRepository",
    "TaskService",
]
