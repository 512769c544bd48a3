"""Observable weather-pane state and its pure transition function."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from .weather.models import WeatherSnapshot

PERMISSION_REQUIRED_REASON = "Location permission not granted"


@dataclass(frozen=True, slots=True)
class Idle:
    pass


@dataclass(frozen=True, slots=True)
class Loading:
    previous_snapshot: WeatherSnapshot | None = None
    previous_updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Success:
    snapshot: WeatherSnapshot
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class Failed:
    reason: str
    previous_updated_at: datetime | None = None
    previous_snapshot: WeatherSnapshot | None = None


RefreshState = Idle | Loading | Success | Failed


@dataclass(frozen=True, slots=True)
class RefreshStarted:
    pass


@dataclass(frozen=True, slots=True)
class RefreshSucceeded:
    snapshot: WeatherSnapshot
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class RefreshFailed:
    reason: str


@dataclass(frozen=True, slots=True)
class PermissionMissing:
    reason: str = PERMISSION_REQUIRED_REASON


@dataclass(frozen=True, slots=True)
class PermissionGranted:
    pass


@dataclass(frozen=True, slots=True)
class SnapshotConverted:
    convert: Callable[[WeatherSnapshot], WeatherSnapshot]


RefreshEvent = (
    RefreshStarted
    | RefreshSucceeded
    | RefreshFailed
    | PermissionMissing
    | PermissionGranted
    | SnapshotConverted
)


def displayed_snapshot(state: RefreshState) -> WeatherSnapshot | None:
    """Snapshot currently on screen, whatever the state."""
    if isinstance(state, Success):
        return state.snapshot
    if isinstance(state, Loading | Failed):
        return state.previous_snapshot
    return None


def last_updated(state: RefreshState) -> datetime | None:
    """Time of the last successful refresh still reflected by ``state``."""
    if isinstance(state, Success):
        return state.updated_at
    if isinstance(state, Loading | Failed):
        return state.previous_updated_at
    return None


def transition(state: RefreshState, event: RefreshEvent) -> RefreshState:
    """Return the state that follows ``state`` after ``event``.

    Failed attempts keep the previously displayed snapshot and timestamp so
    the pane degrades to stale data plus an error. A missing permission
    clears both.
    """
    if isinstance(event, RefreshStarted):
        return Loading(
            previous_snapshot=displayed_snapshot(state),
            previous_updated_at=last_updated(state),
        )
    if isinstance(event, RefreshSucceeded):
        return Success(snapshot=event.snapshot, updated_at=event.updated_at)
    if isinstance(event, RefreshFailed):
        return Failed(
            reason=event.reason,
            previous_updated_at=last_updated(state),
            previous_snapshot=displayed_snapshot(state),
        )
    if isinstance(event, PermissionMissing):
        return Failed(reason=event.reason)
    if isinstance(event, PermissionGranted):
        if isinstance(state, Failed) and state.reason == PERMISSION_REQUIRED_REASON:
            return Idle()
        return state
    if isinstance(event, SnapshotConverted):
        if isinstance(state, Success):
            return Success(snapshot=event.convert(state.snapshot), updated_at=state.updated_at)
        if isinstance(state, Loading) and state.previous_snapshot is not None:
            return Loading(
                previous_snapshot=event.convert(state.previous_snapshot),
                previous_updated_at=state.previous_updated_at,
            )
        if isinstance(state, Failed) and state.previous_snapshot is not None:
            return Failed(
                reason=state.reason,
                previous_updated_at=state.previous_updated_at,
                previous_snapshot=event.convert(state.previous_snapshot),
            )
        return state
    raise TypeError(f"Unknown refresh event: {event!r}")
