"""Notification ports — abstract interfaces for presenting due tasks.

Core modules depend on these protocols, never on a specific channel.
"""

from __future__ import annotations

from typing import Protocol

from src.data.models import Channel, Task


class Presenter(Protocol):
    """One presentation channel (push message, in-app modal, audio cue)."""

    channel: Channel

    async def present(self, task: Task) -> None: ...


class PermissionPort(Protocol):
    """Gate for the native notification channel."""

    def has_permission(self) -> bool: ...

    async def request_permission(self) -> bool: ...


class NotificationCloser(Protocol):
    """Closes whatever is still on screen for a task once the user answered."""

    def close(self, task_id: int) -> bool: ...
