"""
Mini Task Scheduler — Task Database.

Tasks persist in SQLite across restarts (or in memory for throwaway runs).
Completed tasks are moved out of the active table into a history table, so
the due-task loop only ever scans live work.
"""

from __future__ import annotations

import itertools
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from copy import deepcopy
from datetime import datetime
from pathlib import Path

from src.data.models import Mood, Priority, Subscriber, Task, TaskStatus
from src.ports.store_port import TaskStoreError

logger = logging.getLogger(__name__)

_TASK_COLUMNS = (
    "id, title, scheduled_time, priority, status, notified, "
    "completed_at, mood, deadline, created_at"
)


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _task_params(task: Task) -> tuple:
    return (
        task.id, task.title, task.scheduled_time, task.priority.value,
        task.status.value, int(task.notified), task.completed_at,
        task.mood.value, task.deadline, task.created_at,
    )


class TaskDB:
    """SQLite-backed task store (active tasks + history)."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        self._lock = threading.RLock()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """One transaction on a short-lived connection; errors become TaskStoreError."""
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise TaskStoreError(f"Cannot open task database {self._db_path}: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise TaskStoreError(f"Task database error: {exc}") from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Create the tasks/history tables if they don't exist, and migrate schema."""
        with self._session() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id             INTEGER PRIMARY KEY AUTOINCREMENT,
                    title          TEXT    NOT NULL,
                    scheduled_time TEXT    NOT NULL,
                    priority       TEXT    NOT NULL DEFAULT 'medium',
                    status         TEXT    NOT NULL DEFAULT 'pending',
                    notified       INTEGER NOT NULL DEFAULT 0,
                    completed_at   TEXT,
                    mood           TEXT    NOT NULL DEFAULT 'neutral',
                    deadline       TEXT,
                    created_at     TEXT    NOT NULL DEFAULT ''
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS task_history (
                    id             INTEGER PRIMARY KEY,
                    title          TEXT    NOT NULL,
                    scheduled_time TEXT    NOT NULL,
                    priority       TEXT    NOT NULL,
                    status         TEXT    NOT NULL,
                    notified       INTEGER NOT NULL,
                    completed_at   TEXT,
                    mood           TEXT    NOT NULL DEFAULT 'neutral',
                    deadline       TEXT,
                    created_at     TEXT    NOT NULL DEFAULT '',
                    archived_at    TEXT    NOT NULL
                )
            """)
            # Migrate existing DBs: add new columns if missing
            existing_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(tasks)").fetchall()
            }
            if "mood" not in existing_cols:
                conn.execute(
                    "ALTER TABLE tasks ADD COLUMN mood TEXT NOT NULL DEFAULT 'neutral'"
                )
            if "deadline" not in existing_cols:
                conn.execute("ALTER TABLE tasks ADD COLUMN deadline TEXT")
        logger.debug("Task tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            scheduled_time=row["scheduled_time"],
            priority=Priority(row["priority"]),
            status=TaskStatus(row["status"]),
            notified=bool(row["notified"]),
            completed_at=row["completed_at"],
            mood=Mood(row["mood"]),
            deadline=row["deadline"],
            created_at=row["created_at"],
        )

    def locked(self) -> threading.RLock:
        """Hold this for a read-modify-write spanning several calls."""
        return self._lock

    def list_tasks(self) -> list[Task]:
        """Return all active tasks in store order (by id)."""
        with self._lock, self._session() as conn:
            rows = conn.execute(f"SELECT {_TASK_COLUMNS} FROM tasks ORDER BY id").fetchall()
        return [self._row_to_task(r) for r in rows]

    def save_tasks(self, tasks: list[Task]) -> None:
        """Replace the whole active table in a single transaction."""
        with self._lock, self._session() as conn:
            conn.execute("DELETE FROM tasks")
            conn.executemany(
                f"INSERT INTO tasks ({_TASK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [_task_params(t) for t in tasks],
            )
        logger.debug("Saved %d active tasks", len(tasks))

    def add_task(
        self,
        title: str,
        scheduled_time: str,
        priority: Priority = Priority.MEDIUM,
        mood: Mood = Mood.NEUTRAL,
        deadline: str | None = None,
    ) -> Task:
        """Insert a new pending, un-notified task."""
        created_at = _now_iso()
        with self._lock, self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks
                    (title, scheduled_time, priority, status, notified,
                     completed_at, mood, deadline, created_at)
                VALUES (?, ?, ?, 'pending', 0, NULL, ?, ?, ?)
                """,
                (title, scheduled_time, Priority(priority).value, Mood(mood).value, deadline, created_at),
            )
            task_id = cursor.lastrowid

        task = Task(
            id=task_id,
            title=title,
            scheduled_time=scheduled_time,
            priority=Priority(priority),
            mood=Mood(mood),
            deadline=deadline,
            created_at=created_at,
        )
        logger.info("Task added: #%d '%s' at %s", task_id, title, scheduled_time)
        return task

    def get_task(self, task_id: int) -> Task | None:
        """Fetch a single active task by ID."""
        with self._lock, self._session() as conn:
            row = conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def replace_task(self, task: Task) -> bool:
        """Overwrite an existing active task. Returns False if it is gone."""
        with self._lock, self._session() as conn:
            cursor = conn.execute(
                """
                UPDATE tasks SET
                    title = ?, scheduled_time = ?, priority = ?, status = ?,
                    notified = ?, completed_at = ?, mood = ?, deadline = ?
                WHERE id = ?
                """,
                (
                    task.title, task.scheduled_time, task.priority.value,
                    task.status.value, int(task.notified), task.completed_at,
                    task.mood.value, task.deadline, task.id,
                ),
            )
        return cursor.rowcount > 0

    def delete_task(self, task_id: int) -> bool:
        """Permanently delete an active task by ID."""
        with self._lock, self._session() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Task #%d deleted", task_id)
        return deleted

    def archive_task(self, task_id: int) -> Task | None:
        """Move an active task into history. Returns the moved task, or None."""
        with self._lock, self._session() as conn:
            row = conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            ).fetchone()
            if row is None:
                return None
            task = self._row_to_task(row)
            conn.execute(
                f"""
                INSERT OR REPLACE INTO task_history ({_TASK_COLUMNS}, archived_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (*_task_params(task), _now_iso()),
            )
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        logger.info("Task #%d '%s' moved to history", task.id, task.title)
        return task

    def list_history(self) -> list[Task]:
        """Return archived tasks, most recently archived first."""
        with self._lock, self._session() as conn:
            rows = conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM task_history ORDER BY archived_at DESC, id DESC"
            ).fetchall()
        return [self._row_to_task(r) for r in rows]


class MemoryTaskDB:
    """In-memory task store with the same interface as TaskDB.

    Nothing survives a restart. Returned tasks are copies, so callers only
    change the store through save/replace.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tasks: dict[int, Task] = {}
        self._history: list[Task] = []
        self._ids = itertools.count(1)

    def locked(self) -> threading.RLock:
        return self._lock

    def list_tasks(self) -> list[Task]:
        with self._lock:
            return [deepcopy(t) for t in self._tasks.values()]

    def save_tasks(self, tasks: list[Task]) -> None:
        with self._lock:
            self._tasks = {t.id: deepcopy(t) for t in tasks}
        logger.debug("Saved %d active tasks", len(tasks))

    def add_task(
        self,
        title: str,
        scheduled_time: str,
        priority: Priority = Priority.MEDIUM,
        mood: Mood = Mood.NEUTRAL,
        deadline: str | None = None,
    ) -> Task:
        with self._lock:
            task_id = next(self._ids)
            while task_id in self._tasks:
                task_id = next(self._ids)
            task = Task(
                id=task_id,
                title=title,
                scheduled_time=scheduled_time,
                priority=Priority(priority),
                mood=Mood(mood),
                deadline=deadline,
                created_at=_now_iso(),
            )
            self._tasks[task_id] = task
        logger.info("Task added: #%d '%s' at %s", task_id, title, scheduled_time)
        return deepcopy(task)

    def get_task(self, task_id: int) -> Task | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return deepcopy(task) if task is not None else None

    def replace_task(self, task: Task) -> bool:
        with self._lock:
            if task.id not in self._tasks:
                return False
            self._tasks[task.id] = deepcopy(task)
        return True

    def delete_task(self, task_id: int) -> bool:
        with self._lock:
            deleted = self._tasks.pop(task_id, None) is not None
        if deleted:
            logger.info("Task #%d deleted", task_id)
        return deleted

    def archive_task(self, task_id: int) -> Task | None:
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                return None
            self._history.insert(0, task)
        logger.info("Task #%d '%s' moved to history", task.id, task.title)
        return deepcopy(task)

    def list_history(self) -> list[Task]:
        with self._lock:
            return [deepcopy(t) for t in self._history]


class SubscriberDB:
    """SQLite-backed storage for Telegram chats subscribed to reminders."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS subscribers (
                    chat_id       INTEGER PRIMARY KEY,
                    display_name  TEXT    NOT NULL,
                    subscribed_at TEXT    NOT NULL,
                    active        INTEGER NOT NULL DEFAULT 1
                )
            """)
        logger.debug("Subscribers table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_subscriber(row: sqlite3.Row) -> Subscriber:
        return Subscriber(
            chat_id=row["chat_id"],
            display_name=row["display_name"],
            subscribed_at=row["subscribed_at"],
            active=bool(row["active"]),
        )

    def subscribe(self, chat_id: int, display_name: str) -> Subscriber:
        """Register (or re-activate) a chat for push reminders."""
        now = _now_iso()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO subscribers (chat_id, display_name, subscribed_at, active)
                VALUES (?, ?, ?, 1)
                ON CONFLICT(chat_id) DO UPDATE SET
                    display_name = excluded.display_name,
                    subscribed_at = excluded.subscribed_at,
                    active = 1
                """,
                (chat_id, display_name, now),
            )
        logger.info("Chat %d subscribed to reminders", chat_id)
        return Subscriber(chat_id=chat_id, display_name=display_name, subscribed_at=now)

    def unsubscribe(self, chat_id: int) -> bool:
        """Stop push reminders for a chat."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE subscribers SET active = 0 WHERE chat_id = ? AND active = 1",
                (chat_id,),
            )
        stopped = cursor.rowcount > 0
        if stopped:
            logger.info("Chat %d unsubscribed from reminders", chat_id)
        return stopped

    def list_active(self) -> list[Subscriber]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM subscribers WHERE active = 1 ORDER BY subscribed_at"
            ).fetchall()
        return [self._row_to_subscriber(r) for r in rows]

    def is_subscribed(self, chat_id: int) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM subscribers WHERE chat_id = ? AND active = 1",
                (chat_id,),
            ).fetchone()
        return row is not None
