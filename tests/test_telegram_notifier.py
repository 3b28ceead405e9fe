"""Tests for src.adapters.telegram_notifier — push reminders and permission."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.adapters.telegram_notifier import (
    TelegramNotifier,
    TelegramPermission,
    format_reminder,
    reminder_keyboard,
)
from src.data.models import Channel, Mood, Priority, Subscriber, Task

TASK = Task(
    id=4,
    title="Pay rent",
    scheduled_time="09:00",
    priority=Priority.HIGH,
    mood=Mood.DREADING,
    deadline="2024-05-01",
)


def _subscribers(*chat_ids):
    subs = MagicMock()
    subs.list_active.return_value = [Subscriber(chat_id=c, display_name=str(c)) for c in chat_ids]
    return subs


class TestFormatting:
    def test_format_reminder(self):
        text = format_reminder(TASK)
        assert "Pay rent" in text
        assert "09:00" in text
        assert "high" in text
        assert "😫" in text
        assert "2024-05-01" in text

    def test_no_deadline_line(self):
        text = format_reminder(Task(id=1, title="A", scheduled_time="10:00"))
        assert "Deadline" not in text

    def test_keyboard_callback_data(self):
        markup = reminder_keyboard(4, 5)
        buttons = markup.inline_keyboard[0]
        assert [b.callback_data for b in buttons] == ["task:complete:4", "task:snooze:4", "task:dismiss:4"]
        assert "5 min" in buttons[1].text


class TestTelegramNotifier:
    def test_channel(self):
        assert TelegramNotifier.channel == Channel.NATIVE

    @pytest.mark.asyncio
    async def test_sends_to_every_subscriber(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        await TelegramNotifier(bot, _subscribers(1, 2)).present(TASK)

        assert bot.send_message.await_count == 2
        chat_ids = {c.kwargs["chat_id"] for c in bot.send_message.await_args_list}
        assert chat_ids == {1, 2}

    @pytest.mark.asyncio
    async def test_one_chat_failing(self):
        bot = MagicMock()
        bot.send_message = AsyncMock(side_effect=[ConnectionError("blocked"), None])
        await TelegramNotifier(bot, _subscribers(1, 2)).present(TASK)
        assert bot.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_all_chats_failing_raises(self):
        bot = MagicMock()
        bot.send_message = AsyncMock(side_effect=ConnectionError("offline"))
        with pytest.raises(ConnectionError):
            await TelegramNotifier(bot, _subscribers(1)).present(TASK)

    @pytest.mark.asyncio
    async def test_no_subscribers_is_quiet(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        await TelegramNotifier(bot, _subscribers()).present(TASK)
        bot.send_message.assert_not_awaited()


class TestTelegramPermission:
    @pytest.mark.asyncio
    async def test_follows_subscriptions(self, subscriber_db):
        permission = TelegramPermission(subscriber_db)
        assert permission.has_permission() is False
        assert await permission.request_permission() is False

        subscriber_db.subscribe(100, "Amit")
        assert permission.has_permission() is True
        assert await permission.request_permission() is True
