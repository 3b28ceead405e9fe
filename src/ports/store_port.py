"""Task store port — abstract interface for task persistence.

Core modules depend on this protocol, never on a specific storage backend.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol

from src.data.models import Mood, Priority, Task


class TaskStoreError(Exception):
    """Raised when the task store cannot be read or written."""


class TaskStorePort(Protocol):
    """Abstract task store used by the evaluator, action handler and API.

    ``save_tasks`` replaces the whole active store. Callers doing a
    read-modify-write hold ``locked()`` for its duration.
    """

    def locked(self) -> AbstractContextManager: ...

    def list_tasks(self) -> list[Task]: ...

    def save_tasks(self, tasks: list[Task]) -> None: ...

    def add_task(
        self,
        title: str,
        scheduled_time: str,
        priority: Priority = Priority.MEDIUM,
        mood: Mood = Mood.NEUTRAL,
        deadline: str | None = None,
    ) -> Task: ...

    def get_task(self, task_id: int) -> Task | None: ...

    def replace_task(self, task: Task) -> bool: ...

    def delete_task(self, task_id: int) -> bool: ...

    def archive_task(self, task_id: int) -> Task | None: ...

    def list_history(self) -> list[Task]: ...
