"""Bounded event feed with repeat-deduplication for the dashboard."""

from __future__ import annotations

from collections import deque
from datetime import UTC, datetime

from .models import DashboardEvent, Severity, as_utc

_DEDUPED: frozenset[Severity] = frozenset({"WARN", "ERROR"})


class EventBuffer:
    """Keep the most recent events; repeated warnings/errors collapse into one entry.

    A warning or error with a ``dedupe_key`` seen within ``dedupe_window_seconds``
    of the previous occurrence bumps that entry's count instead of adding a
    line. A periodic refresh failing every cycle therefore shows up once.
    """

    def __init__(self, *, max_events: int = 40, dedupe_window_seconds: int = 60) -> None:
        self.max_events = max_events
        self.dedupe_window_seconds = dedupe_window_seconds
        self._events: deque[DashboardEvent] = deque()
        self._by_key: dict[str, DashboardEvent] = {}

    def add(
        self,
        *,
        severity: Severity,
        message: str,
        dedupe_key: str | None = None,
        ts: datetime | None = None,
    ) -> DashboardEvent:
        now = as_utc(ts or datetime.now(UTC))
        key = dedupe_key if severity in _DEDUPED else None

        if key is not None:
            existing = self._by_key.get(key)
            if existing is not None:
                if (now - existing.last_seen).total_seconds() <= self.dedupe_window_seconds:
                    existing.count += 1
                    existing.last_seen = now
                    return existing

        event = DashboardEvent(ts=now, severity=severity, message=message, dedupe_key=key)
        self._events.append(event)
        if key is not None:
            self._by_key[key] = event
        while len(self._events) > self.max_events:
            self._forget(self._events.popleft())
        return event

    def _forget(self, event: DashboardEvent) -> None:
        if event.dedupe_key and self._by_key.get(event.dedupe_key) is event:
            del self._by_key[event.dedupe_key]

    def recent(self, limit: int | None = None) -> list[DashboardEvent]:
        """Events oldest first, optionally only the last ``limit``."""
        items = list(self._events)
        return items[-limit:] if limit else items

    def count(self, severity: Severity | None = None) -> int:
        """Occurrences, weighted by dedupe counts."""
        return sum(
            event.count
            for event in self._events
            if severity is None or event.severity == severity
        )
