"""
Mini Task Scheduler — Notification Dispatcher.

Fans a due task out to every configured presentation channel. Channels are
independent and best-effort: one failing (or lacking permission) never stops
the others, and nothing raised by a channel reaches the due-task loop.

This module is channel-agnostic: it depends on the Presenter and
PermissionPort protocols, not on Telegram or the modal board.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.data.models import Channel

if TYPE_CHECKING:
    from src.data.models import Task
    from src.ports.notification_port import PermissionPort, Presenter

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Presents a due task through all available channels."""

    def __init__(
        self,
        presenters: list[Presenter],
        permission: PermissionPort | None = None,
    ) -> None:
        self._presenters = list(presenters)
        self._permission = permission

    @property
    def channels(self) -> list[Channel]:
        return [p.channel for p in self._presenters]

    def _native_allowed(self) -> bool:
        if self._permission is None:
            return False
        try:
            return self._permission.has_permission()
        except Exception as exc:
            logger.warning("Permission check failed, skipping native channel: %s", exc)
            return False

    async def _present(self, presenter: Presenter, task: Task) -> bool:
        channel = presenter.channel
        try:
            await presenter.present(task)
        except Exception as exc:
            if channel == Channel.CUE:
                logger.debug("Cue failed for task #%d: %s", task.id, exc)
            else:
                logger.warning("Channel %s failed for task #%d: %s", channel.value, task.id, exc)
            return False
        return True

    async def dispatch(self, task: Task) -> list[Channel]:
        """Present ``task`` on every channel concurrently; return the channels that succeeded."""
        presenters = []
        for presenter in self._presenters:
            if presenter.channel == Channel.NATIVE and not self._native_allowed():
                logger.debug("No notification permission, skipping native channel for task #%d", task.id)
                continue
            presenters.append(presenter)

        results = await asyncio.gather(*(self._present(p, task) for p in presenters))
        delivered = [p.channel for p, ok in zip(presenters, results) if ok]

        logger.info(
            "Task #%d dispatched via %s",
            task.id, ", ".join(c.value for c in delivered) or "no channel",
        )
        return delivered
