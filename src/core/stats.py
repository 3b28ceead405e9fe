"""Dashboard statistics — pure business logic.

Productivity and an hour-of-day heatmap over active tasks plus history.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.core.schedule_time import parse_hhmm
from src.data.models import Task, TaskStatus

logger = logging.getLogger(__name__)


@dataclass
class TaskStats:
    completed: int
    pending: int
    productivity: int                                  # percent, 0-100
    heatmap: list[int] = field(default_factory=list)   # 24 buckets, one per hour


def compute_stats(active: list[Task], history: list[Task]) -> TaskStats:
    """Summarize tasks for the dashboard.

    History entries count as completed work. The heatmap counts every task
    (active and history) by the hour it is scheduled at.
    """
    all_tasks = [*active, *history]
    completed = sum(1 for t in all_tasks if t.status == TaskStatus.COMPLETED)
    pending = sum(1 for t in active if t.status == TaskStatus.PENDING)
    productivity = round(completed / len(all_tasks) * 100) if all_tasks else 0

    hours = [0] * 24
    for task in all_tasks:
        try:
            hour, _ = parse_hhmm(task.scheduled_time)
        except ValueError:
            logger.debug("Task #%d has no usable time for the heatmap", task.id)
            continue
        hours[hour] += 1

    return TaskStats(
        completed=completed,
        pending=pending,
        productivity=productivity,
        heatmap=hours,
    )
