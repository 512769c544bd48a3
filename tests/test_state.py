"""Tests for the weather-pane state machine."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from always_on_dashboard.state import (
    PERMISSION_REQUIRED_REASON,
    Failed,
    Idle,
    Loading,
    PermissionGranted,
    PermissionMissing,
    RefreshFailed,
    RefreshStarted,
    RefreshSucceeded,
    SnapshotConverted,
    Success,
    displayed_snapshot,
    last_updated,
    transition,
)
from always_on_dashboard.weather.models import CurrentConditions, WeatherSnapshot

T1 = datetime(2026, 10, 17, 8, 0, tzinfo=UTC)
T2 = datetime(2026, 10, 17, 8, 15, tzinfo=UTC)


def _snapshot(temperature: float = 10.0) -> WeatherSnapshot:
    return WeatherSnapshot(
        location_label="Oslo",
        current=CurrentConditions(
            temperature=temperature, feels_like=temperature, description="Overcast clouds"
        ),
    )


def test_first_refresh_goes_idle_to_loading_to_success() -> None:
    loading = transition(Idle(), RefreshStarted())
    assert loading == Loading()

    success = transition(loading, RefreshSucceeded(snapshot=_snapshot(), updated_at=T1))
    assert success == Success(snapshot=_snapshot(), updated_at=T1)


def test_refresh_after_success_keeps_snapshot_visible() -> None:
    loading = transition(Success(snapshot=_snapshot(), updated_at=T1), RefreshStarted())

    assert isinstance(loading, Loading)
    assert displayed_snapshot(loading) == _snapshot()
    assert last_updated(loading) == T1


def test_failure_after_loading_preserves_stale_data() -> None:
    loading = Loading(previous_snapshot=_snapshot(), previous_updated_at=T1)
    failed = transition(loading, RefreshFailed("timeout"))

    assert failed == Failed(reason="timeout", previous_updated_at=T1, previous_snapshot=_snapshot())


def test_repeated_failures_keep_last_good_timestamp() -> None:
    state = Failed(reason="timeout", previous_updated_at=T1, previous_snapshot=_snapshot())
    state = transition(transition(state, RefreshStarted()), RefreshFailed("HTTP 503"))

    assert isinstance(state, Failed)
    assert state.reason == "HTTP 503"
    assert state.previous_updated_at == T1


def test_success_replaces_failure() -> None:
    state = Failed(reason="timeout", previous_updated_at=T1, previous_snapshot=_snapshot())
    state = transition(state, RefreshSucceeded(snapshot=_snapshot(12.0), updated_at=T2))

    assert state == Success(snapshot=_snapshot(12.0), updated_at=T2)


def test_missing_permission_clears_displayed_data() -> None:
    state = transition(Success(snapshot=_snapshot(), updated_at=T1), PermissionMissing())

    assert state == Failed(reason=PERMISSION_REQUIRED_REASON)
    assert displayed_snapshot(state) is None
    assert last_updated(state) is None


def test_permission_granted_only_clears_permission_failure() -> None:
    assert transition(Failed(reason=PERMISSION_REQUIRED_REASON), PermissionGranted()) == Idle()

    other = Failed(reason="timeout")
    assert transition(other, PermissionGranted()) is other


def test_snapshot_conversion_applies_to_every_displayed_snapshot() -> None:
    double = SnapshotConverted(
        lambda snapshot: snapshot.model_copy(
            update={
                "current": snapshot.current.model_copy(
                    update={"temperature": snapshot.current.temperature * 2}
                )
            }
        )
    )

    success = transition(Success(snapshot=_snapshot(), updated_at=T1), double)
    loading = transition(Loading(previous_snapshot=_snapshot(), previous_updated_at=T1), double)
    failed = transition(Failed(reason="x", previous_snapshot=_snapshot()), double)

    for state in (success, loading, failed):
        snapshot = displayed_snapshot(state)
        assert snapshot is not None
        assert snapshot.current.temperature == 20.0
    assert last_updated(success) == T1
    assert transition(Idle(), double) == Idle()


def test_unknown_event_is_rejected() -> None:
    with pytest.raises(TypeError):
        transition(Idle(), object())  # type: ignore[arg-type]
