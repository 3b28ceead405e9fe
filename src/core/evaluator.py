"""
Mini Task Scheduler — Due-Task Evaluator.

A small polling loop that:
- scans the active store for pending, not-yet-notified tasks,
- picks those whose scheduled time passed within the grace window,
- marks them notified and persists the store (write-before-notify),
- hands each one to the dispatcher.

Tasks further in the past than the grace window are treated as missed and
skipped without a reminder, so a restart after a long pause does not spam.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from src.core import lifecycle
from src.core.schedule_time import is_within_window, scheduled_datetime

if TYPE_CHECKING:
    from src.core.dispatcher import NotificationDispatcher
    from src.data.models import Task
    from src.ports.clock_port import Clock
    from src.ports.store_port import TaskStorePort

logger = logging.getLogger(__name__)


class DueTaskEvaluator:
    """Decides which tasks became due since the last pass."""

    def __init__(
        self,
        store: TaskStorePort,
        clock: Clock,
        grace_window: timedelta = timedelta(minutes=5),
    ) -> None:
        self._store = store
        self._clock = clock
        self._window = grace_window

    def evaluate(self) -> list[Task]:
        """Run one pass and return the tasks newly found due.

        Due tasks are marked notified and the store is saved before this
        returns. A store failure propagates (TaskStoreError) and nothing
        is reported as due.
        """
        now = self._clock.now()

        with self._store.locked():
            tasks = self._store.list_tasks()
            due: list[Task] = []

            for task in tasks:
                if not lifecycle.is_eligible(task):
                    continue
                try:
                    scheduled = scheduled_datetime(task.scheduled_time, now, task.deadline)
                except ValueError as exc:
                    logger.warning("Task #%d has an unusable schedule: %s", task.id, exc)
                    continue

                if is_within_window(scheduled, now, self._window):
                    lifecycle.mark_notified(task)
                    due.append(task)
                elif now - scheduled > self._window:
                    logger.debug("Task #%d missed its window (%s), skipping", task.id, scheduled)

            if due:
                self._store.save_tasks(tasks)

        for task in due:
            logger.info("Task #%d '%s' is due (%s)", task.id, task.title, task.scheduled_time)
        return due


def collect_due(evaluator: DueTaskEvaluator) -> list[Task]:
    """Run one pass; a store failure aborts it and the next tick retries."""
    try:
        return evaluator.evaluate()
    except Exception as exc:
        logger.warning("Due-task pass aborted, retrying next tick: %s", exc)
        return []


async def run_evaluation(
    evaluator: DueTaskEvaluator,
    dispatcher: NotificationDispatcher,
) -> list[Task]:
    """One evaluator tick: detect due tasks, then dispatch them and wait for delivery."""
    due = collect_due(evaluator)
    await asyncio.gather(*(dispatcher.dispatch(task) for task in due))
    return due


async def run_due_task_loop(
    evaluator: DueTaskEvaluator,
    dispatcher: NotificationDispatcher,
    *,
    interval_seconds: float = 10.0,
) -> None:
    """Evaluate immediately, then every ``interval_seconds``.

    Each due task is dispatched in its own asyncio task, so a slow channel
    never delays the next pass. To stop the loop, cancel the coroutine/task;
    dispatches already under way are left to finish.
    """
    sleep_s = max(0.01, float(interval_seconds))
    logger.info("Due-task loop started (every %.1fs)", sleep_s)
    in_flight: set[asyncio.Task] = set()

    while True:
        for task in collect_due(evaluator):
            job = asyncio.create_task(dispatcher.dispatch(task), name=f"dispatch-{task.id}")
            in_flight.add(job)
            job.add_done_callback(in_flight.discard)
        await asyncio.sleep(sleep_s)
