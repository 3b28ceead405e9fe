"""Request models for the REST API.

Validation lives here so route handlers only ever see clean values. The
older web client sends ``command``/``time``; both spellings are accepted.
"""

from __future__ import annotations

from datetime import date

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from src.core.schedule_time import normalize_hhmm
from src.data.models import Mood, Priority, TaskStatus


class TaskCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(max_length=500, validation_alias=AliasChoices("title", "command"))
    scheduled_time: str = Field(validation_alias=AliasChoices("scheduled_time", "time"))
    priority: Priority = Priority.MEDIUM
    mood: Mood = Mood.NEUTRAL
    deadline: str | None = None

    @field_validator("title", mode="before")
    @classmethod
    def clean_title(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("title must not be empty")
        return v

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def clean_time(cls, v: object) -> object:
        if isinstance(v, str):
            return normalize_hhmm(v)
        return v

    @field_validator("deadline", mode="before")
    @classmethod
    def clean_deadline(cls, v: object) -> object:
        if v is None or v == "":
            return None
        if isinstance(v, date):
            return v.isoformat()
        return date.fromisoformat(str(v)).isoformat()

    @field_validator("priority", "mood", mode="before")
    @classmethod
    def lower_enum(cls, v: object) -> object:
        return v.strip().lower() if isinstance(v, str) else v


class TaskUpdate(TaskCreate):
    """Partial update; only the fields present in the request are applied."""

    title: str | None = Field(default=None, max_length=500, validation_alias=AliasChoices("title", "command"))
    scheduled_time: str | None = Field(default=None, validation_alias=AliasChoices("scheduled_time", "time"))
    priority: Priority | None = None
    mood: Mood | None = None
    status: TaskStatus | None = None

    @field_validator("status", mode="before")
    @classmethod
    def lower_status(cls, v: object) -> object:
        return v.strip().lower() if isinstance(v, str) else v


class SnoozeRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    minutes: int | None = Field(default=None, gt=0, le=24 * 60)
