"""Clock port — injectable source of the current time."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    """Returns the current timezone-aware wall-clock time."""

    def now(self) -> datetime: ...
