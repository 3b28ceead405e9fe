"""Task store factory — creates the right store based on config."""

from __future__ import annotations

from src.config import settings
from src.ports.store_port import TaskStorePort


def create_task_store(backend: str | None = None, db_path: str | None = None) -> TaskStorePort:
    """Return the task store matching the TASK_STORE setting.

    Args:
        backend: "sqlite" or "memory". Defaults to settings.TASK_STORE.
        db_path: SQLite file path. Defaults to settings.DATABASE_PATH.
    """
    backend = (backend or settings.TASK_STORE).lower()

    if backend == "sqlite":
        from src.data.db import TaskDB

        return TaskDB(db_path=db_path or settings.DATABASE_PATH)

    if backend == "memory":
        from src.data.db import MemoryTaskDB

        return MemoryTaskDB()

    raise ValueError(f"Unknown TASK_STORE: {backend!r}")
