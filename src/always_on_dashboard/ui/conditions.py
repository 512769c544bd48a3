"""Running-conditions advisory derived from feels-like temperature and humidity."""

from __future__ import annotations

from dataclasses import dataclass

from ..weather.models import UnitSystem, WeatherSnapshot
from ..weather.units import convert_temperature


@dataclass(frozen=True, slots=True)
class RunningStatus:
    label: str
    style: str


EXTREME = RunningStatus("Extreme conditions: indoor suggested", "bold red")
CAUTION = RunningStatus("Caution: hydrate, go easy", "yellow")
CLEAR = RunningStatus("No restrictions", "green")


def running_status(snapshot: WeatherSnapshot, units: UnitSystem) -> RunningStatus:
    feels_like_f = convert_temperature(snapshot.current.feels_like, units, UnitSystem.IMPERIAL)
    humidity = snapshot.current.humidity or 0
    if feels_like_f >= 88 or feels_like_f <= 20 or humidity >= 85:
        return EXTREME
    if 75 <= feels_like_f < 88 or 70 <= humidity < 85:
        return CAUTION
    return CLEAR
