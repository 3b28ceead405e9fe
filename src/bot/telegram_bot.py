"""
Mini Task Scheduler — Telegram Bot.

The bot is both a delivery channel and a small control surface: chats
subscribe to push reminders with /start, answer them with the inline
buttons, and can list, add and complete tasks with commands.

Security-first: when ALLOWED_USER_IDS is set, everyone else is silently ignored.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.ext import Application, ApplicationBuilder, CallbackQueryHandler, CommandHandler, ContextTypes

from src.config import settings
from src.core.schedule_time import normalize_hhmm
from src.data.models import ActionType, NotificationAction, Priority, TaskStatus
from src.ports.store_port import TaskStoreError

if TYPE_CHECKING:
    from src.core.action_handler import ActionHandler
    from src.data.db import SubscriberDB
    from src.data.models import Task
    from src.ports.store_port import TaskStorePort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def is_authorized(user_id: int | None) -> bool:
    """An empty allow-list means anyone may use the bot."""
    if user_id is None:
        return False
    return not settings.ALLOWED_USER_IDS or user_id in settings.ALLOWED_USER_IDS


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users."""

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if not is_authorized(user.id if user else None):
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _task_line(task: Task) -> str:
    mark = "✅" if task.status == TaskStatus.COMPLETED else "•"
    line = f"{mark} `{task.id}` {task.scheduled_time} {task.title} ({task.priority.value})"
    if task.deadline:
        line += f" — due {task.deadline}"
    return line


def parse_add_args(args: list[str]) -> tuple[str, str, Priority]:
    """Parse ``HH:MM title words [!priority]`` into (time, title, priority).

    Raises ValueError with a user-facing message on bad input.
    """
    if len(args) < 2:
        raise ValueError("Usage: /add HH:MM title [!low|!medium|!high]")

    scheduled_time = normalize_hhmm(args[0])
    words = list(args[1:])
    priority = Priority.MEDIUM
    if words[-1].startswith("!"):
        try:
            priority = Priority(words.pop()[1:].lower())
        except ValueError:
            raise ValueError("Priority must be !low, !medium or !high") from None

    title = " ".join(words).strip()
    if not title:
        raise ValueError("Task title must not be empty")
    return scheduled_time, title, priority


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — subscribe this chat to push reminders."""
    subscribers: SubscriberDB = context.bot_data["subscribers"]
    chat = update.effective_chat
    user = update.effective_user
    name = user.full_name if user else str(chat.id)

    try:
        subscribers.subscribe(chat.id, name)
    except Exception as exc:
        logger.error("/start subscribe error: %s", exc)
        await update.message.reply_text("Couldn't subscribe this chat. Please try again later.")
        return

    await update.message.reply_text(
        "Welcome to *Mini Task Scheduler*!\n\n"
        "This chat will now get a reminder when a task is due, with buttons to "
        "complete, snooze or dismiss it.\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_stop(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /stop — unsubscribe this chat."""
    subscribers: SubscriberDB = context.bot_data["subscribers"]
    if subscribers.unsubscribe(update.effective_chat.id):
        await update.message.reply_text("Reminders turned off for this chat. Send /start to turn them back on.")
    else:
        await update.message.reply_text("This chat wasn't subscribed.")


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/start — Get task reminders in this chat\n"
        "/stop — Stop reminders in this chat\n"
        "/tasks — List active tasks\n"
        "/add HH:MM title [!priority] — Add a task\n"
        "/done <id> — Mark a task as done\n"
        "/history — Recently completed tasks\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_tasks(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /tasks — list active tasks in time order."""
    store: TaskStorePort = context.bot_data["store"]

    try:
        tasks = store.list_tasks()
    except TaskStoreError as exc:
        logger.error("/tasks error: %s", exc)
        await update.message.reply_text("Couldn't load tasks. Please try again.")
        return

    if not tasks:
        await update.message.reply_text("No active tasks. Add one with /add HH:MM title")
        return

    lines = ["*Active tasks:*\n"]
    lines.extend(_task_line(t) for t in sorted(tasks, key=lambda t: t.scheduled_time))
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_add(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /add HH:MM title [!priority]."""
    store: TaskStorePort = context.bot_data["store"]

    try:
        scheduled_time, title, priority = parse_add_args(context.args or [])
    except ValueError as exc:
        await update.message.reply_text(str(exc))
        return

    try:
        task = store.add_task(title=title, scheduled_time=scheduled_time, priority=priority)
    except TaskStoreError as exc:
        logger.error("/add error: %s", exc)
        await update.message.reply_text("Couldn't save the task. Please try again.")
        return

    await update.message.reply_text(
        f"✅ Added `{task.id}` *{task.title}* at {task.scheduled_time} ({task.priority.value})",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <id> — complete a task."""
    actions: ActionHandler = context.bot_data["actions"]

    args = context.args
    if not args:
        await update.message.reply_text("Usage: /done <task_id>\nUse /tasks to see IDs.")
        return

    try:
        task_id = int(args[0])
    except ValueError:
        await update.message.reply_text("Invalid task ID. Use /tasks to see valid IDs.")
        return

    try:
        task = actions.handle(NotificationAction(type=ActionType.COMPLETE, task_id=task_id))
    except TaskStoreError as exc:
        logger.error("/done error: %s", exc)
        await update.message.reply_text("Couldn't update the task. Please try again.")
        return

    if task is None:
        await update.message.reply_text(f"No task with ID {task_id}. Use /tasks to see valid IDs.")
        return
    await update.message.reply_text(f"✅ Marked '*{task.title}*' as done.", parse_mode="Markdown")


@authorized_only
async def cmd_history(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /history — show the last completed tasks."""
    store: TaskStorePort = context.bot_data["store"]

    try:
        history = store.list_history()
    except TaskStoreError as exc:
        logger.error("/history error: %s", exc)
        await update.message.reply_text("Couldn't load history. Please try again.")
        return

    if not history:
        await update.message.reply_text("No completed tasks yet.")
        return

    lines = ["*Completed tasks:*\n"]
    lines.extend(_task_line(t) for t in history[:10])
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


# ---------------------------------------------------------------------------
# Reminder buttons
# ---------------------------------------------------------------------------


_ACK_TEXT = {
    ActionType.COMPLETE: "✅ Completed: {title}",
    ActionType.SNOOZE: "😴 Snoozed: {title} — next reminder at {time}",
    ActionType.DISMISS: "❌ Dismissed: {title}",
}


async def _handle_task_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle a tap on a reminder's Complete / Snooze / Dismiss button."""
    actions: ActionHandler = context.bot_data["actions"]

    query = update.callback_query
    await query.answer()

    user = query.from_user
    if not is_authorized(user.id if user else None):
        return

    action = NotificationAction.parse(query.data or "")
    if action is None:
        logger.warning("Malformed reminder callback: %r", query.data)
        return

    try:
        task = actions.handle(action)
    except TaskStoreError as exc:
        logger.error("Reminder callback error: %s", exc)
        await query.edit_message_text("Something went wrong. Please try again.")
        return

    if task is None:
        await query.edit_message_text("This task no longer needs attention.")
        return
    await query.edit_message_text(
        _ACK_TEXT[action.type].format(title=task.title, time=task.scheduled_time)
    )


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    store: TaskStorePort,
    actions: ActionHandler,
    subscribers: SubscriberDB,
    token: str | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    The caller owns the lifecycle (initialize/start/stop) so the bot can share
    the event loop with the due-task loop.
    """
    app = ApplicationBuilder().token(token or settings.TELEGRAM_BOT_TOKEN).build()

    app.bot_data["store"] = store
    app.bot_data["actions"] = actions
    app.bot_data["subscribers"] = subscribers

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("stop", cmd_stop))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("tasks", cmd_tasks))
    app.add_handler(CommandHandler("add", cmd_add))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler("history", cmd_history))
    app.add_handler(CallbackQueryHandler(
        _handle_task_callback, pattern=r"^task:(complete|snooze|dismiss):\d+$",
    ))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app
