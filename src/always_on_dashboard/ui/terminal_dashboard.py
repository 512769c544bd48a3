"""Rich-rendered always-on dashboard: clock, calendar, weather and event feed."""

from __future__ import annotations

import logging
from datetime import datetime

from rich.columns import Columns
from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..calendar_events import CalendarEvent
from ..redaction import sanitize_text
from ..state import Failed, Idle, Loading, RefreshState, displayed_snapshot, last_updated
from ..weather.models import UnitSystem, WeatherSnapshot
from .conditions import running_status
from .event_buffer import EventBuffer
from .models import ClockState, Severity

_SEVERITY_STYLES: dict[Severity, str] = {
    "INFO": "white",
    "WARN": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold red",
}


def _severity_from_level(level_no: int) -> Severity:
    if level_no >= logging.CRITICAL:
        return "CRITICAL"
    if level_no >= logging.ERROR:
        return "ERROR"
    if level_no >= logging.WARNING:
        return "WARN"
    return "INFO"


class _DashboardLogHandler(logging.Handler):
    """Route logger output into the dashboard event feed instead of the console."""

    def __init__(self, dashboard: TerminalDashboard) -> None:
        super().__init__(level=logging.INFO)
        self.dashboard = dashboard

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.dashboard.record_log(
                severity=_severity_from_level(record.levelno),
                message=sanitize_text(record.getMessage()),
            )
        except Exception:
            self.handleError(record)


class TerminalDashboard:
    """Holds the latest clock, calendar and weather views and renders them.

    The runner feeds it through ``tick``, ``show_calendar`` and
    ``show_weather`` and hands ``render()`` to ``rich.live.Live``.
    """

    def __init__(
        self,
        *,
        console: Console,
        max_events: int = 40,
        dedupe_window_seconds: int = 60,
    ) -> None:
        self.console = console
        self.events = EventBuffer(
            max_events=max_events,
            dedupe_window_seconds=dedupe_window_seconds,
        )
        self.clock = ClockState()
        self.calendar_events: list[CalendarEvent] = []
        self.calendar_enabled = False
        self.weather_state: RefreshState = Idle()
        self.units = UnitSystem.METRIC
        self.controls_hint: str | None = None
        self._logger: logging.Logger | None = None
        self._original_handlers: list[logging.Handler] = []

    def attach_logger(self, logger: logging.Logger) -> None:
        """Replace console JSON handlers with the dashboard feed handler."""
        self._logger = logger
        self._original_handlers = list(logger.handlers)
        logger.handlers = [_DashboardLogHandler(self)]

    def detach_logger(self) -> None:
        """Restore original logger handlers."""
        if self._logger is None:
            return
        self._logger.handlers = self._original_handlers
        self._logger = None
        self._original_handlers = []

    def record_log(self, *, severity: Severity, message: str) -> None:
        dedupe_key = f"{severity}:{message}" if severity in {"WARN", "ERROR"} else None
        self.events.add(severity=severity, message=message, dedupe_key=dedupe_key)

    def tick(self, now: datetime) -> ClockState:
        self.clock = ClockState.at(now)
        return self.clock

    def show_calendar(self, events: list[CalendarEvent], *, enabled: bool = True) -> None:
        self.calendar_events = list(events)
        self.calendar_enabled = enabled

    def show_weather(self, state: RefreshState, units: UnitSystem) -> None:
        self.weather_state = state
        self.units = units

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> RenderableType:
        clock = self._build_clock_panel()
        calendar = self._build_calendar_panel()
        weather = self._build_weather_panel()
        events = self._build_events_panel()
        if self.console.width < 100:
            return Group(clock, weather, calendar, events)
        return Group(clock, Columns([weather, calendar], equal=True, expand=True), events)

    def print_once(self) -> None:
        self.console.print(self.render())

    def _build_clock_panel(self) -> Panel:
        text = Text(justify="center")
        text.append(self.clock.time_text, style="bold white")
        text.append("\n")
        text.append(self.clock.date_text, style="dim")
        return Panel(text, border_style="blue")

    def _build_calendar_panel(self) -> Panel:
        if not self.calendar_enabled:
            body: RenderableType = Text("Calendar access not granted", style="dim")
        elif not self.calendar_events:
            body = Text("No events today", style="dim")
        else:
            table = Table.grid(padding=(0, 2))
            table.add_column(style="bold", no_wrap=True)
            table.add_column(overflow="fold")
            for event in self.calendar_events:
                table.add_row(self._event_time(event), event.title)
            body = table
        return Panel(body, title="Today", border_style="cyan")

    def _build_weather_panel(self) -> Panel:
        state = self.weather_state
        snapshot = displayed_snapshot(state)
        parts: list[RenderableType] = []

        if isinstance(state, Idle):
            parts.append(Text("Awaiting location permission", style="dim"))
        elif snapshot is None and isinstance(state, Loading):
            parts.append(Text("Loading weather…", style="dim"))

        if snapshot is not None:
            parts.extend(self._snapshot_lines(snapshot))

        updated = last_updated(state)
        status = Text(style="dim")
        if updated is not None:
            status.append(f"Updated {updated.astimezone():%I:%M %p}")
        if isinstance(state, Loading) and snapshot is not None:
            status.append("  (updating…)")
        if status.plain:
            parts.append(status)
        if isinstance(state, Failed):
            parts.append(Text(state.reason, style="red"))

        title = snapshot.location_label if snapshot is not None else "Weather"
        border = "red" if isinstance(state, Failed) else "green"
        return Panel(Group(*parts), title=title, border_style=border)

    def _snapshot_lines(self, snapshot: WeatherSnapshot) -> list[RenderableType]:
        units = self.units
        temp_symbol = units.temperature_symbol
        current = snapshot.current

        headline = Text()
        headline.append(f"{current.temperature:.0f}{temp_symbol}", style="bold white")
        headline.append(f"  {current.description}")
        details = [f"Feels like {current.feels_like:.0f}{temp_symbol}"]
        if current.humidity is not None:
            details.append(f"Humidity {current.humidity}%")
        if current.wind_speed is not None:
            details.append(f"Wind {current.wind_speed:.1f} {units.speed_symbol}")
        lines: list[RenderableType] = [headline, Text(" · ".join(details), style="dim")]

        if snapshot.hourly:
            hourly = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
            hourly.add_column("Time")
            hourly.add_column("Temp", justify="right")
            hourly.add_column("Rain", justify="right")
            for hour in snapshot.hourly:
                chance = hour.precipitation_chance
                hourly.add_row(
                    f"{hour.time.astimezone():%I %p}",
                    f"{hour.temperature:.0f}°",
                    f"{chance * 100:.0f}%" if chance is not None else "-",
                )
            lines.append(hourly)

        if snapshot.tomorrow is not None:
            tomorrow = snapshot.tomorrow
            lines.append(
                Text(
                    f"Tomorrow: {tomorrow.description}  "
                    f"{tomorrow.min_temp:.0f}° / {tomorrow.max_temp:.0f}{temp_symbol}"
                )
            )

        advisory = running_status(snapshot, units)
        lines.append(Text(f"Running: {advisory.label}", style=advisory.style))
        return lines

    def _build_events_panel(self) -> Panel:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Time", width=9)
        table.add_column("Severity", width=9)
        table.add_column("Message", overflow="fold")
        recent = self.events.recent(limit=6)
        for event in recent:
            style = _SEVERITY_STYLES[event.severity]
            message = event.message
            if event.count > 1 and event.last_seen is not None:
                message = f"{message} (x{event.count}, last {event.last_seen.astimezone():%H:%M:%S})"
            table.add_row(
                f"{event.ts.astimezone():%H:%M:%S}",
                f"[{style}]{event.severity}[/{style}]",
                message,
            )
        if not recent:
            table.add_row("-", "INFO", "No events yet")
        return Panel(table, title="Events", subtitle=self.controls_hint, border_style="white")

    @staticmethod
    def _event_time(event: CalendarEvent) -> str:
        if event.all_day:
            return "All day"
        start = event.start.astimezone()
        end = event.end.astimezone()
        return f"{start:%I:%M %p} - {end:%I:%M %p}"
