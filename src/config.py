"""
Mini Task Scheduler — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram (empty token disables the push channel and the bot)
    TELEGRAM_BOT_TOKEN: str = ""

    # Security: empty list means open demo mode
    ALLOWED_USER_IDS: list[int] = []

    # Storage: "sqlite" | "memory"
    TASK_STORE: str = "sqlite"
    DATABASE_PATH: str = "data/tasks.db"

    TIMEZONE: str = "UTC"

    # Due-task loop
    POLL_INTERVAL_SECONDS: float = 10.0
    GRACE_WINDOW_MINUTES: int = 5
    SNOOZE_MINUTES: int = 5

    # Notification presentation
    MODAL_TIMEOUT_SECONDS: float = 30.0
    COMPLETE_REMOVAL_DELAY_SECONDS: float = 2.0
    SOUND_ENABLED: bool = True

    # REST API
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 3000

    LOG_LEVEL: str = "INFO"

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("TASK_STORE", mode="before")
    @classmethod
    def parse_store(cls, v: str) -> str:
        backend = str(v).strip().lower()
        if backend not in ("sqlite", "memory"):
            raise ValueError(f"TASK_STORE must be 'sqlite' or 'memory', got {v!r}")
        return backend

    @field_validator("SOUND_ENABLED", mode="before")
    @classmethod
    def parse_bool(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}

    @field_validator("POLL_INTERVAL_SECONDS", "MODAL_TIMEOUT_SECONDS", "COMPLETE_REMOVAL_DELAY_SECONDS")
    @classmethod
    def non_negative_seconds(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("GRACE_WINDOW_MINUTES", "SNOOZE_MINUTES")
    @classmethod
    def positive_minutes(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be > 0")
        return v


def _load_settings() -> Settings:
    """Load settings from environment, exiting on invalid values."""
    try:
        return Settings(
            TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
            TASK_STORE=os.getenv("TASK_STORE", "sqlite"),
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/tasks.db"),
            TIMEZONE=os.getenv("TIMEZONE", "UTC"),
            POLL_INTERVAL_SECONDS=os.getenv("POLL_INTERVAL_SECONDS", "10"),
            GRACE_WINDOW_MINUTES=os.getenv("GRACE_WINDOW_MINUTES", "5"),
            SNOOZE_MINUTES=os.getenv("SNOOZE_MINUTES", "5"),
            MODAL_TIMEOUT_SECONDS=os.getenv("MODAL_TIMEOUT_SECONDS", "30"),
            COMPLETE_REMOVAL_DELAY_SECONDS=os.getenv("COMPLETE_REMOVAL_DELAY_SECONDS", "2"),
            SOUND_ENABLED=os.getenv("SOUND_ENABLED", "true"),
            API_HOST=os.getenv("API_HOST", "127.0.0.1"),
            API_PORT=os.getenv("API_PORT", "3000"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        )
    except ValidationError as exc:
        print(f"ERROR: invalid configuration in .env:\n{exc}", file=sys.stderr)
        sys.exit(1)


# Singleton, imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
