"""Dashboard CLI: run the always-on clock/calendar/weather screen."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import termios
import tty
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from rich.console import Console
from rich.live import Live
from rich.prompt import Prompt

from .calendar_events import CalendarSource, JsonFileCalendarSource, load_todays_events
from .config import Settings, load_settings
from .exceptions import ConfigError
from .location.acquirer import LocationAcquirer
from .location.providers import ConfiguredLocationProvider, IpGeolocationProvider
from .log_setup import setup_logger
from .orchestrator import RefreshOrchestrator
from .state import Success
from .ui.terminal_dashboard import TerminalDashboard
from .weather.models import UnitSystem
from .weather.openweather import OpenWeatherProvider


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse dashboard CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Always-on dashboard showing time, today's calendar and local weather."
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Refresh once, print the dashboard and exit.",
    )
    parser.add_argument(
        "--units",
        choices=[unit.value for unit in UnitSystem],
        default=None,
        help="Unit system; defaults from DASHBOARD_REGION or the process locale.",
    )
    parser.add_argument(
        "--api-key",
        type=str,
        default=None,
        help="OpenWeather API key overriding OPENWEATHER_API_KEY.",
    )
    parser.add_argument(
        "--fresh-location",
        action="store_true",
        help="Demand a fresh high-accuracy fix; skip cached location fallbacks.",
    )
    parser.add_argument(
        "--no-location",
        action="store_true",
        help="Run without location access (weather stays disabled).",
    )
    parser.add_argument(
        "--no-calendar",
        action="store_true",
        help="Run without calendar access.",
    )
    return parser.parse_args(argv)


@dataclass(slots=True)
class DashboardApp:
    """Wired components for one dashboard session."""

    orchestrator: RefreshOrchestrator
    dashboard: TerminalDashboard
    weather: OpenWeatherProvider
    primary: IpGeolocationProvider
    calendar: CalendarSource | None
    logger: logging.Logger
    _background: set[asyncio.Task[None]] = field(default_factory=set)

    async def reload_calendar(self) -> None:
        events = await load_todays_events(self.calendar, self.logger)
        self.dashboard.show_calendar(events, enabled=self.orchestrator.has_calendar_permission)

    def spawn_calendar_reload(self) -> None:
        task = asyncio.get_running_loop().create_task(self.reload_calendar())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_background(self) -> None:
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._background):
            task.cancel()
        await self.orchestrator.aclose()
        await self.weather.aclose()
        await self.primary.aclose()


def build_app(
    args: argparse.Namespace,
    settings: Settings,
    logger: logging.Logger,
    console: Console,
) -> DashboardApp:
    units = (
        UnitSystem(args.units)
        if args.units
        else UnitSystem.from_region(settings.resolved_region())
    )
    primary = IpGeolocationProvider(settings, logger.getChild("location"))
    secondary = ConfiguredLocationProvider.from_settings(settings, logger.getChild("location"))
    acquirer = LocationAcquirer(
        primary,
        secondary,
        logger.getChild("location"),
        legacy_timeout_seconds=settings.location_legacy_timeout_seconds,
    )
    weather = OpenWeatherProvider(settings, logger.getChild("weather"))
    calendar = (
        JsonFileCalendarSource(settings.calendar_events_file)
        if settings.calendar_events_file
        else None
    )
    dashboard = TerminalDashboard(console=console)
    orchestrator = RefreshOrchestrator(
        acquirer,
        weather,
        logger.getChild("refresh"),
        units=units,
        credential=args.api_key,
        refresh_interval_seconds=settings.weather_refresh_interval_seconds,
        on_calendar_granted=lambda: app.spawn_calendar_reload(),
    )
    app = DashboardApp(
        orchestrator=orchestrator,
        dashboard=dashboard,
        weather=weather,
        primary=primary,
        calendar=calendar,
        logger=logger,
    )
    orchestrator.subscribe(lambda state: dashboard.show_weather(state, orchestrator.units))
    return app


def _initial_refresh(app: DashboardApp, args: argparse.Namespace) -> None:
    app.orchestrator.on_permissions_changed(
        has_location=not args.no_location,
        has_calendar=not args.no_calendar,
        force_fresh_location=args.fresh_location,
    )
    # Without permission the grant edge never fires; refresh once to surface the reason.
    if args.no_location:
        app.orchestrator.refresh()


class KeyboardControls:
    """Single-key commands for the live dashboard.

    ``u`` toggles units, ``r`` refreshes with a fresh location fix, ``k``
    prompts for an API key override (blank reverts to the configured key)
    and ``q`` quits.
    """

    HINT = "u units · r refresh · k API key · q quit"

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        logger: logging.Logger,
        *,
        prompt_credential: Callable[[], Awaitable[str | None]],
    ) -> None:
        self.orchestrator = orchestrator
        self.logger = logger
        self._prompt_credential = prompt_credential
        self.quit_requested = False

    async def handle(self, key: str) -> bool:
        """Run the command bound to ``key``; False once quit was requested."""
        key = key.lower()
        if key == "u":
            units = self.orchestrator.toggle_units()
            self.logger.info("Units switched to %s", units.value)
        elif key == "r":
            self.logger.info("Manual refresh requested")
            self.orchestrator.refresh(force_fresh_location=True)
        elif key == "k":
            value = await self._prompt_credential()
            if value is not None:
                self.orchestrator.set_credential(value)
        elif key == "q":
            self.quit_requested = True
        return not self.quit_requested


async def dispatch_keys(keys: asyncio.Queue[str], controls: KeyboardControls) -> None:
    """Feed queued keystrokes to ``controls`` until quit."""
    while True:
        chunk = await keys.get()
        for key in chunk:
            if not await controls.handle(key):
                return


class _TerminalKeys:
    """Reads single keystrokes from a tty stdin into a queue (cbreak mode)."""

    def __init__(self, keys: asyncio.Queue[str]) -> None:
        self.keys = keys
        self._fd = sys.stdin.fileno()
        self._saved: list[Any] | None = None

    def resume(self) -> None:
        self._saved = termios.tcgetattr(self._fd)
        tty.setcbreak(self._fd)
        asyncio.get_running_loop().add_reader(self._fd, self._on_readable)

    def pause(self) -> None:
        if self._saved is None:
            return
        asyncio.get_running_loop().remove_reader(self._fd)
        termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)
        self._saved = None

    def _on_readable(self) -> None:
        data = os.read(self._fd, 32)
        if data:
            self.keys.put_nowait(data.decode("utf-8", errors="ignore"))


async def run_once(app: DashboardApp, args: argparse.Namespace) -> int:
    """Single refresh, print, exit. Returns 4 when the weather refresh failed."""
    try:
        _initial_refresh(app, args)
        app.orchestrator.stop_periodic_refresh()
        await app.orchestrator.wait_idle()
        await app.wait_background()
        app.dashboard.tick(datetime.now().astimezone())
        app.dashboard.print_once()
    finally:
        await app.aclose()
    return 0 if isinstance(app.orchestrator.state, Success) else 4


async def run_live(app: DashboardApp, args: argparse.Namespace) -> int:
    """Run until quit or interrupted, redrawing once per second."""
    dashboard = app.dashboard
    keys: asyncio.Queue[str] = asyncio.Queue()
    terminal = _TerminalKeys(keys) if sys.stdin.isatty() else None
    dispatcher: asyncio.Task[None] | None = None
    dashboard.attach_logger(app.logger)
    try:
        with Live(dashboard.render(), console=dashboard.console, refresh_per_second=2) as live:

            async def prompt_credential() -> str | None:
                if terminal is None:
                    return None
                live.stop()
                terminal.pause()
                try:
                    return await asyncio.to_thread(
                        Prompt.ask,
                        "OpenWeather API key (blank clears the override)",
                        console=dashboard.console,
                        password=True,
                        default="",
                        show_default=False,
                    )
                except EOFError:
                    return None
                finally:
                    terminal.resume()
                    live.start()

            controls = KeyboardControls(
                app.orchestrator, app.logger, prompt_credential=prompt_credential
            )
            if terminal is not None:
                terminal.resume()
                dashboard.controls_hint = KeyboardControls.HINT
                dispatcher = asyncio.get_running_loop().create_task(dispatch_keys(keys, controls))

            _initial_refresh(app, args)

            current_day = datetime.now().astimezone().date()
            while not controls.quit_requested:
                now = datetime.now().astimezone()
                if now.date() != current_day:
                    current_day = now.date()
                    app.spawn_calendar_reload()
                dashboard.tick(now)
                live.update(dashboard.render())
                await asyncio.sleep(1 - now.microsecond / 1_000_000)
    finally:
        if dispatcher is not None:
            dispatcher.cancel()
        if terminal is not None:
            terminal.pause()
        await app.aclose()
        dashboard.detach_logger()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the dashboard."""
    args = parse_args(argv)
    logger = setup_logger()
    console = Console()

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 2

    logger.setLevel(settings.log_level)
    logger.info("Dashboard startup", extra={"context": settings.safe_summary()})
    app = build_app(args, settings, logger, console)
    try:
        if args.once:
            return asyncio.run(run_once(app, args))
        return asyncio.run(run_live(app, args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
