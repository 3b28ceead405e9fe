"""
Mini Task Scheduler — Notification Action Handler.

Single entry point for the user's answer to a reminder, whatever channel it
came from (modal button, Telegram inline button, REST call):

- complete: mark completed now; after a short delay move the task to history
- snooze:   push the time forward and make the task eligible again
- dismiss:  leave the task alone (it stays notified, so it won't re-fire)

An action for a task that no longer exists is a no-op, never an error.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from src.core import lifecycle
from src.data.models import ActionType, TaskStatus

if TYPE_CHECKING:
    from src.data.models import NotificationAction, Task
    from src.ports.clock_port import Clock
    from src.ports.notification_port import NotificationCloser
    from src.ports.store_port import TaskStorePort

logger = logging.getLogger(__name__)

# schedule_later(delay_seconds, callback); must be safe to call from any thread.
ScheduleLater = Callable[[float, Callable[[], None]], Any]


class ActionHandler:
    """Turns NotificationAction values into task store mutations."""

    def __init__(
        self,
        store: TaskStorePort,
        clock: Clock,
        schedule_later: ScheduleLater,
        *,
        snooze_minutes: int = 5,
        removal_delay: float = 2.0,
        closers: list[NotificationCloser] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._schedule_later = schedule_later
        self._snooze_minutes = snooze_minutes
        self._removal_delay = removal_delay
        self._closers = list(closers or [])

    @property
    def snooze_minutes(self) -> int:
        return self._snooze_minutes

    def handle(self, action: NotificationAction) -> Task | None:
        """Apply ``action``; return the updated task, or None if nothing changed hands.

        Dismiss returns the (unchanged) task. Unknown ids and snoozing a
        completed task return None.
        """
        with self._store.locked():
            task = self._store.get_task(action.task_id)
            if task is None:
                logger.info("Action %s for unknown task #%d ignored", action.type.value, action.task_id)
                self._close(action.task_id)
                return None

            if action.type == ActionType.COMPLETE:
                result = self._complete(task)
            elif action.type == ActionType.SNOOZE:
                result = self._snooze(task, action.snooze_minutes or self._snooze_minutes)
            else:
                logger.info("Reminder for task #%d dismissed", task.id)
                result = task

        self._close(action.task_id)
        return result

    def _complete(self, task: Task) -> Task:
        lifecycle.complete(task, self._clock.now())
        self._store.replace_task(task)
        logger.info("Task #%d '%s' completed", task.id, task.title)

        self.schedule_removal(task.id)
        return task

    def schedule_removal(self, task_id: int) -> None:
        """Move the task to history after the removal delay, if still completed then."""
        self._schedule_later(self._removal_delay, lambda: self.remove_if_completed(task_id))

    def _snooze(self, task: Task, minutes: int) -> Task | None:
        if task.status != TaskStatus.PENDING:
            logger.info("Task #%d is %s, snooze ignored", task.id, task.status.value)
            return None
        lifecycle.snooze(task, minutes)
        self._store.replace_task(task)
        logger.info("Task #%d snoozed %d min -> %s", task.id, minutes, task.scheduled_time)
        return task

    def remove_if_completed(self, task_id: int) -> Task | None:
        """Move a completed task to history, unless it was reopened meanwhile."""
        try:
            with self._store.locked():
                task = self._store.get_task(task_id)
                if task is None or task.status != TaskStatus.COMPLETED:
                    return None
                return self._store.archive_task(task_id)
        except Exception as exc:
            logger.warning("Could not move task #%d to history: %s", task_id, exc)
            return None

    def _close(self, task_id: int) -> None:
        for closer in self._closers:
            try:
                closer.close(task_id)
            except Exception as exc:
                logger.debug("Closing reminder for task #%d failed: %s", task_id, exc)
