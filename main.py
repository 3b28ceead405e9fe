"""
Mini Task Scheduler — Entry Point.

Single entry point: `python main.py` starts the due-task loop, the REST API
and (when a token is configured) the Telegram bot.
"""

import asyncio
import contextlib
import logging
import signal
from datetime import timedelta

from src.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
for _noisy in ("httpx", "telegram", "werkzeug"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

from src.adapters.audio_cue import TerminalBell
from src.adapters.modal_board import ModalBoard
from src.adapters.store_factory import create_task_store
from src.adapters.system_clock import SystemClock
from src.api.server import ApiServer, create_api
from src.core.action_handler import ActionHandler
from src.core.dispatcher import NotificationDispatcher
from src.core.evaluator import DueTaskEvaluator, run_due_task_loop

logger = logging.getLogger("main")


async def serve() -> None:
    """Wire every component, run until SIGINT/SIGTERM, then shut down in reverse."""
    loop = asyncio.get_running_loop()

    def schedule_later(delay: float, callback) -> None:
        loop.call_soon_threadsafe(loop.call_later, delay, callback)

    store = create_task_store()
    clock = SystemClock(settings.TIMEZONE)
    modals = ModalBoard(
        clock,
        schedule_later,
        timeout=settings.MODAL_TIMEOUT_SECONDS,
        snooze_minutes=settings.SNOOZE_MINUTES,
        sound=settings.SOUND_ENABLED,
    )
    actions = ActionHandler(
        store,
        clock,
        schedule_later,
        snooze_minutes=settings.SNOOZE_MINUTES,
        removal_delay=settings.COMPLETE_REMOVAL_DELAY_SECONDS,
        closers=[modals],
    )

    presenters = [modals, TerminalBell(enabled=settings.SOUND_ENABLED)]
    permission = None
    tg_app = None

    if settings.TELEGRAM_BOT_TOKEN:
        from src.adapters.telegram_notifier import TelegramNotifier, TelegramPermission
        from src.bot.telegram_bot import build_app
        from src.data.db import SubscriberDB

        subscribers = SubscriberDB(settings.DATABASE_PATH)
        tg_app = build_app(store, actions, subscribers)
        presenters.insert(0, TelegramNotifier(tg_app.bot, subscribers, settings.SNOOZE_MINUTES))
        permission = TelegramPermission(subscribers)
    else:
        logger.info("TELEGRAM_BOT_TOKEN not set, push reminders disabled")

    dispatcher = NotificationDispatcher(presenters, permission)
    evaluator = DueTaskEvaluator(
        store, clock, grace_window=timedelta(minutes=settings.GRACE_WINDOW_MINUTES),
    )

    if permission is not None:
        await permission.request_permission()

    def dispatch_threadsafe(task) -> None:
        asyncio.run_coroutine_threadsafe(dispatcher.dispatch(task), loop)

    api = ApiServer(
        create_api(store, actions, modals, clock, dispatch=dispatch_threadsafe),
        settings.API_HOST,
        settings.API_PORT,
    )
    api.start()

    if tg_app is not None:
        await tg_app.initialize()
        await tg_app.start()
        await tg_app.updater.start_polling()
        logger.info("Telegram bot polling")

    loop_task = asyncio.create_task(
        run_due_task_loop(evaluator, dispatcher, interval_seconds=settings.POLL_INTERVAL_SECONDS)
    )

    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    logger.info("Mini Task Scheduler running (channels: %s)", ", ".join(c.value for c in dispatcher.channels))
    try:
        await stop.wait()
    finally:
        logger.info("Shutting down...")
        loop_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await loop_task
        if tg_app is not None:
            await tg_app.updater.stop()
            await tg_app.stop()
            await tg_app.shutdown()
        api.stop()


def main() -> None:
    logger.info("Starting Mini Task Scheduler...")
    asyncio.run(serve())


if __name__ == "__main__":
    main()
