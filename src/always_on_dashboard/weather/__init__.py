"""Weather provider integrations."""

from .base import WeatherProvider
from .models import CurrentConditions, DailyForecast, HourlyForecast, UnitSystem, WeatherSnapshot
from .openweather import OpenWeatherProvider
from .units import convert

__all__ = [
    "CurrentConditions",
    "DailyForecast",
    "HourlyForecast",
    "OpenWeatherProvider",
    "UnitSystem",
    "WeatherProvider",
    "WeatherSnapshot",
    "convert",
]
