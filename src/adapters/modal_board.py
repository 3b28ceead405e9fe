"""In-app modal adapter — implements Presenter for the MODAL channel.

Keeps the reminders currently on screen. The web client polls them through
the REST API, renders one full-screen card per entry, and posts the user's
choice back. A modal nobody answers closes itself after a timeout without
touching the task.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from src.data.models import MOOD_EMOJI, ActionType, Channel

if TYPE_CHECKING:
    from src.core.action_handler import ScheduleLater
    from src.data.models import Task
    from src.ports.clock_port import Clock

logger = logging.getLogger(__name__)

VIBRATION_PATTERN = [200, 100, 200, 100, 200]


@dataclass
class Modal:
    """Everything the client needs to draw a reminder card."""

    task_id: int
    title: str
    scheduled_time: str
    priority: str
    mood: str
    mood_emoji: str
    deadline: str | None
    opened_at: str
    expires_at: str
    snooze_minutes: int
    sound: bool
    vibrate: list[int] = field(default_factory=lambda: list(VIBRATION_PATTERN))
    actions: list[str] = field(default_factory=lambda: [a.value for a in ActionType])

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ModalBoard:
    """Open reminder modals, keyed by task id."""

    channel = Channel.MODAL

    def __init__(
        self,
        clock: Clock,
        schedule_later: ScheduleLater,
        *,
        timeout: float = 30.0,
        snooze_minutes: int = 5,
        sound: bool = True,
    ) -> None:
        self._clock = clock
        self._schedule_later = schedule_later
        self._timeout = timeout
        self._snooze_minutes = snooze_minutes
        self._sound = sound
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)
        self._modals: dict[int, tuple[int, Modal]] = {}

    async def present(self, task: Task) -> None:
        self.open(task)

    def open(self, task: Task) -> Modal:
        """Show a modal for ``task`` (replacing an older one for the same task)."""
        now = self._clock.now()
        modal = Modal(
            task_id=task.id,
            title=task.title,
            scheduled_time=task.scheduled_time,
            priority=task.priority.value,
            mood=task.mood.value,
            mood_emoji=MOOD_EMOJI.get(task.mood, "😐"),
            deadline=task.deadline,
            opened_at=now.isoformat(),
            expires_at=(now + timedelta(seconds=self._timeout)).isoformat(),
            snooze_minutes=self._snooze_minutes,
            sound=self._sound,
        )
        with self._lock:
            token = next(self._tokens)
            self._modals[task.id] = (token, modal)

        self._schedule_later(self._timeout, lambda: self._expire(task.id, token))
        logger.info("Reminder modal opened for task #%d", task.id)
        return modal

    def _expire(self, task_id: int, token: int) -> None:
        with self._lock:
            entry = self._modals.get(task_id)
            if entry is None or entry[0] != token:
                return
            del self._modals[task_id]
        logger.info("Reminder modal for task #%d auto-dismissed", task_id)

    def close(self, task_id: int) -> bool:
        """Close the modal for a task. Returns False if none was open."""
        with self._lock:
            closed = self._modals.pop(task_id, None) is not None
        if closed:
            logger.debug("Reminder modal for task #%d closed", task_id)
        return closed

    def get(self, task_id: int) -> Modal | None:
        with self._lock:
            entry = self._modals.get(task_id)
        return entry[1] if entry else None

    def active(self) -> list[Modal]:
        """Open modals, oldest first."""
        with self._lock:
            entries = sorted(self._modals.values(), key=lambda e: e[0])
        return [modal for _, modal in entries]
