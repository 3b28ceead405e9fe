"""Task state transitions.

Every mutation of a task's status, time or notified flag goes through here,
so the invariants hold no matter which surface (evaluator, notification
action, REST, bot command) triggers it:

- a task is eligible for a reminder only while pending and not notified,
- changing the scheduled time or reopening always clears ``notified``,
- ``completed_at`` is set on completion and cleared on reopen.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from src.core.schedule_time import normalize_hhmm, shift_schedule
from src.data.models import Mood, Priority, Task, TaskStatus


def is_eligible(task: Task) -> bool:
    return task.status == TaskStatus.PENDING and not task.notified


def mark_notified(task: Task) -> None:
    task.notified = True


def complete(task: Task, now: datetime) -> None:
    task.status = TaskStatus.COMPLETED
    task.completed_at = now.isoformat()


def reopen(task: Task) -> None:
    task.status = TaskStatus.PENDING
    task.completed_at = None
    task.notified = False


def reschedule(task: Task, new_time: str) -> None:
    """Set a new time of day and make the task eligible again."""
    task.scheduled_time = normalize_hhmm(new_time)
    task.notified = False


def snooze(task: Task, minutes: int) -> None:
    task.scheduled_time, task.deadline = shift_schedule(
        task.scheduled_time, minutes, task.deadline,
    )
    task.notified = False


def apply_update(task: Task, changes: dict[str, Any], now: datetime) -> None:
    """Apply a partial edit (already validated) to a task.

    Unknown keys are ignored. ``status`` goes through complete/reopen so
    ``completed_at`` stays consistent.
    """
    if "title" in changes and changes["title"] is not None:
        task.title = changes["title"]
    if "priority" in changes and changes["priority"] is not None:
        task.priority = Priority(changes["priority"])
    if "mood" in changes and changes["mood"] is not None:
        task.mood = Mood(changes["mood"])
    if "deadline" in changes and changes["deadline"] != task.deadline:
        task.deadline = changes["deadline"]
        task.notified = False
    if "scheduled_time" in changes and changes["scheduled_time"] is not None:
        if normalize_hhmm(changes["scheduled_time"]) != task.scheduled_time:
            reschedule(task, changes["scheduled_time"])

    status = changes.get("status")
    if status is not None and TaskStatus(status) != task.status:
        if status == TaskStatus.COMPLETED:
            complete(task, now)
        else:
            reopen(task)
