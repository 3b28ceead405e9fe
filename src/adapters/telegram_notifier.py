"""Telegram notification adapter — implements Presenter and PermissionPort.

The native channel: a push message to every subscribed chat, with inline
buttons that come back to the bot as ``task:<action>:<id>`` callbacks.
A chat grants permission by sending /start to the bot.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup

from src.data.models import MOOD_EMOJI, ActionType, Channel, NotificationAction

if TYPE_CHECKING:
    from src.data.db import SubscriberDB
    from src.data.models import Task

logger = logging.getLogger(__name__)


def format_reminder(task: Task) -> str:
    """Human-readable reminder body."""
    lines = [
        f"⏰ Task Reminder: {task.title}",
        f"🕒 Time: {task.scheduled_time}",
        f"🎯 Priority: {task.priority.value}",
        f"{MOOD_EMOJI.get(task.mood, '😐')} Mood: {task.mood.value}",
    ]
    if task.deadline:
        lines.append(f"📅 Deadline: {task.deadline}")
    return "\n".join(lines)


def reminder_keyboard(task_id: int, snooze_minutes: int) -> InlineKeyboardMarkup:
    def _button(label: str, action: ActionType) -> InlineKeyboardButton:
        data = NotificationAction(type=action, task_id=task_id).to_callback_data()
        return InlineKeyboardButton(label, callback_data=data)

    return InlineKeyboardMarkup([[
        _button("✅ Complete", ActionType.COMPLETE),
        _button(f"😴 Snooze {snooze_minutes} min", ActionType.SNOOZE),
        _button("❌ Dismiss", ActionType.DISMISS),
    ]])


class TelegramNotifier:
    """Telegram implementation of the native notification Presenter."""

    channel = Channel.NATIVE

    def __init__(self, bot: Bot, subscribers: SubscriberDB, snooze_minutes: int = 5) -> None:
        self._bot = bot
        self._subscribers = subscribers
        self._snooze_minutes = snooze_minutes

    async def present(self, task: Task) -> None:
        """Send the reminder to every subscribed chat.

        One chat failing does not stop the others; if every send fails the
        last error is raised so the dispatcher can log the channel as down.
        """
        chats = self._subscribers.list_active()
        text = format_reminder(task)
        markup = reminder_keyboard(task.id, self._snooze_minutes)

        last_error: Exception | None = None
        sent = 0
        for sub in chats:
            try:
                await self._bot.send_message(chat_id=sub.chat_id, text=text, reply_markup=markup)
                sent += 1
            except Exception as exc:
                logger.error("Failed to push task #%d to chat %d: %s", task.id, sub.chat_id, exc)
                last_error = exc

        if sent == 0 and last_error is not None:
            raise last_error
        logger.info("Task #%d pushed to %d chat(s)", task.id, sent)


class TelegramPermission:
    """Permission to push exists once at least one chat has subscribed."""

    def __init__(self, subscribers: SubscriberDB) -> None:
        self._subscribers = subscribers

    def has_permission(self) -> bool:
        return bool(self._subscribers.list_active())

    async def request_permission(self) -> bool:
        # Telegram only lets the user open the conversation, so all we can do is wait for /start.
        granted = self.has_permission()
        if not granted:
            logger.info("No chat subscribed yet; send /start to the bot to enable push reminders")
        return granted
