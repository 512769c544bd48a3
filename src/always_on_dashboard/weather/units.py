"""Unit conversion for weather snapshots."""

from __future__ import annotations

from .models import UnitSystem, WeatherSnapshot

MPS_TO_MPH = 2.23694


def convert_temperature(value: float, from_units: UnitSystem, to_units: UnitSystem) -> float:
    if from_units == to_units:
        return value
    if to_units is UnitSystem.IMPERIAL:
        return value * 9 / 5 + 32
    return (value - 32) * 5 / 9


def convert_speed(
    value: float | None, from_units: UnitSystem, to_units: UnitSystem
) -> float | None:
    if value is None or from_units == to_units:
        return value
    if to_units is UnitSystem.IMPERIAL:
        return value * MPS_TO_MPH
    return value / MPS_TO_MPH


def convert(
    snapshot: WeatherSnapshot, from_units: UnitSystem, to_units: UnitSystem
) -> WeatherSnapshot:
    """Return ``snapshot`` re-expressed in ``to_units``.

    The input is returned unchanged when both unit systems match. Otherwise
    every temperature (current, feels-like, hourly, tomorrow min/max) and the
    current wind speed are converted; optional fields stay absent.
    """
    if from_units == to_units:
        return snapshot

    def temp(value: float) -> float:
        return convert_temperature(value, from_units, to_units)

    current = snapshot.current.model_copy(
        update={
            "temperature": temp(snapshot.current.temperature),
            "feels_like": temp(snapshot.current.feels_like),
            "wind_speed": convert_speed(snapshot.current.wind_speed, from_units, to_units),
        }
    )
    hourly = [
        hour.model_copy(update={"temperature": temp(hour.temperature)})
        for hour in snapshot.hourly
    ]
    tomorrow = None
    if snapshot.tomorrow is not None:
        tomorrow = snapshot.tomorrow.model_copy(
            update={
                "min_temp": temp(snapshot.tomorrow.min_temp),
                "max_temp": temp(snapshot.tomorrow.max_temp),
            }
        )
    return snapshot.model_copy(
        update={"current": current, "hourly": hourly, "tomorrow": tomorrow}
    )
