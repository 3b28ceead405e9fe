"""Schedule time math — pure business logic.

Turns a task's "HH:MM" time of day into a concrete datetime, checks it
against the trailing grace window, and shifts times for snoozing.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta

logger = logging.getLogger(__name__)

_HHMM_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(raw: str) -> tuple[int, int]:
    """Extract (hour, minute) from an "HH:MM" string.

    Also accepts an ISO datetime ("2025-01-15T09:00:00") and uses its time part.
    Raises ValueError on malformed input.
    """
    text = raw.strip()
    if "T" in text:
        text = text.split("T")[1][:5]

    match = _HHMM_RE.match(text)
    if match is None:
        raise ValueError(f"Not an HH:MM time: {raw!r}")
    return int(match.group(1)), int(match.group(2))


def normalize_hhmm(raw: str) -> str:
    """Return the zero-padded "HH:MM" form of a valid time string."""
    hour, minute = parse_hhmm(raw)
    return f"{hour:02d}:{minute:02d}"


def scheduled_datetime(
    scheduled_time: str,
    now: datetime,
    deadline: str | None = None,
) -> datetime:
    """Combine a time of day with today's date (or the deadline date).

    The result carries the tzinfo of ``now``. Tasks never roll over to the
    next day on their own.
    """
    hour, minute = parse_hhmm(scheduled_time)
    day = date.fromisoformat(deadline) if deadline else now.date()
    return datetime.combine(day, time(hour, minute), tzinfo=now.tzinfo)


def is_within_window(scheduled: datetime, now: datetime, window: timedelta) -> bool:
    """True when ``now - scheduled`` lies in the closed interval [0, window]."""
    elapsed = now - scheduled
    return timedelta(0) <= elapsed <= window


def shift_schedule(
    scheduled_time: str,
    minutes: int,
    deadline: str | None = None,
) -> tuple[str, str | None]:
    """Move a time of day forward by ``minutes``.

    Wraps past midnight. A deadline date, when present, is carried forward
    by the days crossed so the combined datetime still moves by exactly
    ``minutes``.

    Returns:
        (new "HH:MM", new deadline or None)
    """
    hour, minute = parse_hhmm(scheduled_time)
    total = hour * 60 + minute + minutes
    days, remainder = divmod(total, 24 * 60)
    new_time = f"{remainder // 60:02d}:{remainder % 60:02d}"

    new_deadline = deadline
    if deadline and days:
        new_deadline = (date.fromisoformat(deadline) + timedelta(days=days)).isoformat()

    logger.debug("Shifted %s by %d min -> %s (deadline %s)", scheduled_time, minutes, new_time, new_deadline)
    return new_time, new_deadline
