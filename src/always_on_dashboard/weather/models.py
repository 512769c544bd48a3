"""Typed models for normalized weather snapshots."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

_IMPERIAL_REGIONS = frozenset({"US", "BS", "BZ", "KY"})


class UnitSystem(str, Enum):
    """Measurement system used for every temperature and speed in a snapshot."""

    METRIC = "metric"
    IMPERIAL = "imperial"

    @property
    def api_value(self) -> str:
        return self.value

    @property
    def temperature_symbol(self) -> str:
        return "°C" if self is UnitSystem.METRIC else "°F"

    @property
    def speed_symbol(self) -> str:
        return "m/s" if self is UnitSystem.METRIC else "mph"

    @property
    def other(self) -> UnitSystem:
        return UnitSystem.IMPERIAL if self is UnitSystem.METRIC else UnitSystem.METRIC

    @classmethod
    def from_region(cls, region: str | None) -> UnitSystem:
        """Default unit system for an ISO region code."""
        if region and region.strip().upper() in _IMPERIAL_REGIONS:
            return cls.IMPERIAL
        return cls.METRIC


class CurrentConditions(BaseModel):
    """Current conditions at the fix location."""

    model_config = ConfigDict(frozen=True)

    temperature: float
    feels_like: float
    description: str
    icon: str | None = None
    humidity: int | None = None
    wind_speed: float | None = None


class HourlyForecast(BaseModel):
    """One forecast point, typically three hours apart."""

    model_config = ConfigDict(frozen=True)

    time: datetime
    temperature: float
    icon: str | None = None
    precipitation_chance: float | None = Field(default=None, ge=0, le=1)


class DailyForecast(BaseModel):
    """Aggregated outlook for tomorrow."""

    model_config = ConfigDict(frozen=True)

    date: datetime
    min_temp: float
    max_temp: float
    description: str
    icon: str | None = None


class WeatherSnapshot(BaseModel):
    """One complete weather read, all values in a single unit system."""

    model_config = ConfigDict(frozen=True)

    location_label: str
    current: CurrentConditions
    hourly: list[HourlyForecast] = Field(default_factory=list)
    tomorrow: DailyForecast | None = None
    sunrise: datetime | None = None
    sunset: datetime | None = None
