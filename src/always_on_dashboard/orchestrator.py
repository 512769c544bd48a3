"""Weather refresh orchestration: permissions, periodic schedule, units and credential."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from functools import partial

from .exceptions import LocationError, WeatherProviderError
from .location.acquirer import LocationAcquirer
from .state import (
    Idle,
    PermissionGranted,
    PermissionMissing,
    RefreshEvent,
    RefreshFailed,
    RefreshStarted,
    RefreshState,
    RefreshSucceeded,
    SnapshotConverted,
    displayed_snapshot,
    transition,
)
from .weather.base import WeatherProvider
from .weather.models import UnitSystem
from .weather.units import convert

DEFAULT_REFRESH_INTERVAL_SECONDS = 15 * 60

StateListener = Callable[[RefreshState], None]
Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RefreshOrchestrator:
    """Own the weather pane's ``RefreshState`` and every trigger that changes it.

    Each ``refresh()`` runs as its own task: acquire a fix, then fetch weather
    using the units and credential captured when the refresh started. Runs are
    numbered; a run whose result arrives after a newer run has already
    published one is discarded. Only this object writes the state, and every
    write goes through ``state.transition``.
    """

    def __init__(
        self,
        acquirer: LocationAcquirer,
        weather: WeatherProvider,
        logger: logging.Logger,
        *,
        units: UnitSystem = UnitSystem.METRIC,
        credential: str | None = None,
        refresh_interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        on_calendar_granted: Callable[[], object] | None = None,
        clock: Clock = _utc_now,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.acquirer = acquirer
        self.weather = weather
        self.logger = logger
        self.refresh_interval_seconds = refresh_interval_seconds
        self._units = units
        self._credential = _normalize_credential(credential)
        self._on_calendar_granted = on_calendar_granted
        self._clock = clock
        self._sleep = sleep

        self._state: RefreshState = Idle()
        self._listeners: list[StateListener] = []
        self._has_location = False
        self._has_calendar = False
        self._periodic_task: asyncio.Task[None] | None = None
        self._refresh_tasks: set[asyncio.Task[None]] = set()
        self._generation = 0
        self._published_generation = 0
        self._closed = False

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def units(self) -> UnitSystem:
        return self._units

    @property
    def credential(self) -> str | None:
        return self._credential

    @property
    def has_location_permission(self) -> bool:
        return self._has_location

    @property
    def has_calendar_permission(self) -> bool:
        return self._has_calendar

    @property
    def periodic_refresh_active(self) -> bool:
        return self._periodic_task is not None and not self._periodic_task.done()

    @property
    def in_flight(self) -> int:
        return len(self._refresh_tasks)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every new state; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def on_permissions_changed(
        self,
        has_location: bool,
        has_calendar: bool,
        *,
        force_fresh_location: bool = False,
    ) -> None:
        """Apply permission levels; only a false -> true edge triggers work."""
        location_granted = has_location and not self._has_location
        location_revoked = not has_location and self._has_location
        calendar_granted = has_calendar and not self._has_calendar
        self._has_location = has_location
        self._has_calendar = has_calendar

        if location_granted:
            self.logger.info("Location permission granted; starting weather refresh")
            self._apply(PermissionGranted())
            self.refresh(force_fresh_location=force_fresh_location)
            self.start_periodic_refresh()
        elif location_revoked:
            self.logger.info("Location permission revoked; stopping weather refresh")
            self.stop_periodic_refresh()
            self._cancel_refreshes()
            self.refresh()

        if calendar_granted and self._on_calendar_granted is not None:
            self._on_calendar_granted()

    def refresh(self, force_fresh_location: bool = False) -> asyncio.Task[None] | None:
        """Start one acquire -> fetch run and return its task.

        Without location permission the state becomes ``Failed`` immediately
        and no task is started.
        """
        if self._closed:
            return None
        self._generation += 1
        generation = self._generation

        if not self._has_location:
            self._published_generation = generation
            self._apply(PermissionMissing())
            return None

        self._apply(RefreshStarted())
        task = asyncio.get_running_loop().create_task(
            self._run(generation, force_fresh_location, self._units, self._credential),
            name=f"weather-refresh-{generation}",
        )
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)
        return task

    def set_credential(self, value: str | None) -> None:
        """Override the API key; blank input reverts to the configured default."""
        self._credential = _normalize_credential(value)
        self.logger.info(
            "Weather credential %s", "override set" if self._credential else "override cleared"
        )
        self.refresh()
        self.start_periodic_refresh()

    def toggle_units(self) -> UnitSystem:
        """Flip units, convert the displayed snapshot in place, then refresh."""
        old_units = self._units
        new_units = old_units.other
        self._units = new_units
        if displayed_snapshot(self._state) is not None:
            self._apply(SnapshotConverted(partial(convert, from_units=old_units, to_units=new_units)))
        self.logger.info("Units switched to %s", new_units.value)
        self.refresh()
        return new_units

    # ------------------------------------------------------------------
    # Periodic schedule
    # ------------------------------------------------------------------

    def start_periodic_refresh(self) -> None:
        """(Re)arm the periodic refresh; any previous cycle is cancelled first."""
        self.stop_periodic_refresh()
        if self._closed or not self._has_location:
            return
        self._periodic_task = asyncio.get_running_loop().create_task(
            self._periodic(), name="weather-periodic-refresh"
        )

    def stop_periodic_refresh(self) -> None:
        if self._periodic_task is not None:
            self._periodic_task.cancel()
            self._periodic_task = None

    async def _periodic(self) -> None:
        while True:
            await self._sleep(self.refresh_interval_seconds)
            self.logger.debug("Periodic weather refresh")
            self.refresh()

    # ------------------------------------------------------------------
    # Refresh run
    # ------------------------------------------------------------------

    async def _run(
        self,
        generation: int,
        force_fresh_location: bool,
        units: UnitSystem,
        credential: str | None,
    ) -> None:
        try:
            fix = await self.acquirer.acquire(high_accuracy=force_fresh_location)
        except LocationError as exc:
            self.logger.warning("Location acquisition failed: %s", exc)
            self._publish(generation, RefreshFailed(str(exc) or "Location unavailable"))
            return
        except Exception as exc:
            self.logger.exception("Unexpected location failure")
            self._publish(generation, RefreshFailed(str(exc) or "Location unavailable"))
            return

        self.logger.info(
            "Location fix (%.4f, %.4f) tier=%s",
            fix.latitude,
            fix.longitude,
            fix.accuracy_tier.value,
            extra={"context": {"refresh": generation, "units": units.value}},
        )
        try:
            snapshot = await self.weather.fetch(fix.latitude, fix.longitude, units, credential)
        except WeatherProviderError as exc:
            self.logger.warning("Weather fetch failed: %s", exc)
            self._publish(generation, RefreshFailed(str(exc) or "Weather unavailable"))
            return
        except Exception as exc:
            self.logger.exception("Unexpected weather failure")
            self._publish(generation, RefreshFailed(str(exc) or "Weather unavailable"))
            return

        if units != self._units:
            snapshot = convert(snapshot, units, self._units)
        self._publish(generation, RefreshSucceeded(snapshot=snapshot, updated_at=self._clock()))

    def _publish(self, generation: int, event: RefreshEvent) -> None:
        if generation < self._published_generation:
            self.logger.info(
                "Discarding result of refresh %d; refresh %d already published",
                generation,
                self._published_generation,
            )
            return
        self._published_generation = generation
        self._apply(event)

    def _apply(self, event: RefreshEvent) -> None:
        new_state = transition(self._state, event)
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                self.logger.exception("Refresh state listener failed")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait until no refresh run is in flight."""
        while pending := [task for task in self._refresh_tasks if not task.done()]:
            await asyncio.gather(*pending, return_exceptions=True)

    def _cancel_refreshes(self) -> list[asyncio.Task[None]]:
        tasks = list(self._refresh_tasks)
        for task in tasks:
            task.cancel()
        return tasks

    async def aclose(self) -> None:
        """Cancel the periodic timer and every in-flight refresh, end to end."""
        self._closed = True
        periodic = self._periodic_task
        self.stop_periodic_refresh()
        pending = self._cancel_refreshes()
        if periodic is not None:
            pending.append(periodic)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


def _normalize_credential(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None
