"""Read-only calendar access for today's events."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, time, timedelta
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import CalendarError

UNTITLED = "(No title)"


class CalendarEvent(BaseModel):
    """One event instance; recurring events appear once per occurrence."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str = UNTITLED
    start: datetime
    end: datetime
    all_day: bool = Field(default=False)

    @field_validator("title", mode="before")
    @classmethod
    def blank_title(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return UNTITLED
        return value


class CalendarSource(Protocol):
    async def events_between(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """Events overlapping ``[start, end)``."""


class JsonFileCalendarSource:
    """Calendar source backed by a JSON list of event objects.

    Each object carries ``id``, ``title``, ``start``, ``end`` (ISO-8601) and
    optionally ``all_day``. The file is re-read on every query.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def events_between(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        events = await asyncio.to_thread(self._load)
        return [event for event in events if _overlaps(event, start, end)]

    def _load(self) -> list[CalendarEvent]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise CalendarError(f"Failed reading calendar file {self.path}: {exc}") from exc
        except ValueError as exc:
            raise CalendarError(f"Calendar file {self.path} is not valid JSON.") from exc
        if not isinstance(raw, list):
            raise CalendarError(f"Calendar file {self.path} must contain a JSON list.")
        try:
            return [CalendarEvent.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise CalendarError(f"Calendar file {self.path} has an invalid event: {exc}") from exc


def today_window(now: datetime) -> tuple[datetime, datetime]:
    """Local-midnight bounds of the day containing ``now``."""
    local_now = now.astimezone()
    start = datetime.combine(local_now.date(), time.min, tzinfo=local_now.tzinfo)
    return start, start + timedelta(days=1)


async def todays_events(source: CalendarSource, now: datetime | None = None) -> list[CalendarEvent]:
    """Today's events ordered by start time."""
    start, end = today_window(now or datetime.now().astimezone())
    events = await source.events_between(start, end)
    return sorted(events, key=lambda event: _aware(event.start))


async def load_todays_events(
    source: CalendarSource | None,
    logger: logging.Logger,
    now: datetime | None = None,
) -> list[CalendarEvent]:
    """Like ``todays_events`` but a failing source yields an empty list."""
    if source is None:
        return []
    try:
        return await todays_events(source, now)
    except CalendarError as exc:
        logger.warning("Calendar load error: %s", exc)
        return []


def _overlaps(event: CalendarEvent, start: datetime, end: datetime) -> bool:
    event_start = _aware(event.start)
    event_end = _aware(event.end)
    return event_start < end and event_end > start


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.astimezone()
