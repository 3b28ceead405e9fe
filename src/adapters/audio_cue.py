"""Audio cue adapter — implements Presenter for the CUE channel.

Rings the terminal bell when the server runs in an interactive terminal.
Web clients get their sound/vibration hints from the modal payload instead.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, TextIO

from src.data.models import Channel

if TYPE_CHECKING:
    from src.data.models import Task

logger = logging.getLogger(__name__)


class TerminalBell:
    """Best-effort audible cue on a TTY stream."""

    channel = Channel.CUE

    def __init__(self, stream: TextIO | None = None, enabled: bool = True) -> None:
        self._stream = stream
        self._enabled = enabled

    async def present(self, task: Task) -> None:
        if not self._enabled:
            return
        stream = self._stream if self._stream is not None else sys.stderr
        if not stream.isatty():
            raise RuntimeError("cue stream is not a terminal")
        stream.write("\a")
        stream.flush()
        logger.debug("Bell rung for task #%d", task.id)
