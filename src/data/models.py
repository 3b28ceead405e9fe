"""
Mini Task Scheduler — Data Models.

A task is the only persistent entity the scheduler cares about. Times and
dates are kept as ISO strings ("HH:MM", "YYYY-MM-DD") so records round-trip
through SQLite and JSON unchanged.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"


class Mood(StrEnum):
    """How the user feels about a task; shown on the reminder."""

    EXCITED = "excited"
    NEUTRAL = "neutral"
    DREADING = "dreading"
    CHALLENGING = "challenging"
    ROUTINE = "routine"


MOOD_EMOJI = {
    Mood.EXCITED: "😃",
    Mood.NEUTRAL: "😐",
    Mood.DREADING: "😫",
    Mood.CHALLENGING: "💡",
    Mood.ROUTINE: "🔁",
}


class ActionType(StrEnum):
    COMPLETE = "complete"
    SNOOZE = "snooze"
    DISMISS = "dismiss"


class Channel(StrEnum):
    NATIVE = "native"
    MODAL = "modal"
    CUE = "cue"


@dataclass
class Task:
    """A timed task tracked by the due-task loop."""

    id: int
    title: str
    scheduled_time: str                 # HH:MM
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    notified: bool = False
    completed_at: str | None = None     # ISO timestamp
    mood: Mood = Mood.NEUTRAL
    deadline: str | None = None         # ISO date YYYY-MM-DD
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        return cls(
            id=int(data["id"]),
            title=str(data["title"]),
            scheduled_time=str(data["scheduled_time"]),
            priority=Priority(str(data.get("priority") or "medium").lower()),
            status=TaskStatus(data.get("status") or "pending"),
            notified=bool(data.get("notified", False)),
            completed_at=data.get("completed_at"),
            mood=Mood(data.get("mood") or "neutral"),
            deadline=data.get("deadline"),
            created_at=data.get("created_at") or "",
        )


@dataclass(frozen=True)
class NotificationAction:
    """A user's answer to a reminder, independent of the channel it came from."""

    type: ActionType
    task_id: int
    snooze_minutes: int | None = None

    @classmethod
    def parse(cls, raw: str) -> NotificationAction | None:
        """Parse callback data of the form ``task:<action>:<id>``.

        Returns None on anything malformed.
        """
        parts = raw.split(":")
        if len(parts) != 3 or parts[0] != "task":
            return None
        try:
            return cls(type=ActionType(parts[1]), task_id=int(parts[2]))
        except ValueError:
            return None

    def to_callback_data(self) -> str:
        return f"task:{self.type.value}:{self.task_id}"


@dataclass
class Subscriber:
    """A Telegram chat that opted in to push reminders."""

    chat_id: int
    display_name: str
    subscribed_at: str = ""
    active: bool = field(default=True)
