"""Typed event/state models for terminal dashboard presentation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

Severity = Literal["INFO", "WARN", "ERROR", "CRITICAL"]


def as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


@dataclass(slots=True)
class DashboardEvent:
    """One feed entry; ``count`` grows when a repeated warning is collapsed into it."""

    ts: datetime
    severity: Severity
    message: str
    count: int = 1
    last_seen: datetime | None = None
    dedupe_key: str | None = None

    def __post_init__(self) -> None:
        self.ts = as_utc(self.ts)
        self.last_seen = self.ts if self.last_seen is None else as_utc(self.last_seen)


@dataclass(frozen=True, slots=True)
class ClockState:
    """Formatted wall-clock text, e.g. ``07:05:09 PM`` / ``Sat, Oct 17 2026``."""

    time_text: str = "--:-- --"
    date_text: str = "--"

    @classmethod
    def at(cls, now: datetime) -> ClockState:
        return cls(
            time_text=now.strftime("%I:%M:%S %p"),
            date_text=f"{now:%a, %b} {now.day} {now:%Y}",
        )
