"""OpenWeather (api.openweathermap.org) weather provider implementation."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta, timezone
from typing import Any

import httpx

from ..config import Settings
from ..exceptions import MissingCredentialError, WeatherDecodeError, WeatherNetworkError
from ..redaction import sanitize_text
from .base import WeatherProvider
from .models import (
    CurrentConditions,
    DailyForecast,
    HourlyForecast,
    UnitSystem,
    WeatherSnapshot,
)

CURRENT_ENDPOINT = "data/2.5/weather"
FORECAST_ENDPOINT = "data/2.5/forecast"


class OpenWeatherProvider(WeatherProvider):
    """Fetches current conditions plus the 5-day/3-hour forecast and normalizes them."""

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger
        self._default_api_key = settings.openweather_api_key
        self._hourly_limit = settings.weather_hourly_limit
        self._client = httpx.AsyncClient(
            base_url=str(settings.openweather_base_url),
            timeout=settings.weather_timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def resolve_api_key(self, credential: str | None) -> str:
        """Pick the override credential, else the configured default."""
        for candidate in (credential, self._default_api_key):
            if candidate is not None and candidate.strip():
                return candidate.strip()
        raise MissingCredentialError(
            "Missing OpenWeather API key: set OPENWEATHER_API_KEY or provide an override."
        )

    async def fetch(
        self,
        lat: float,
        lon: float,
        units: UnitSystem,
        credential: str | None,
    ) -> WeatherSnapshot:
        api_key = self.resolve_api_key(credential)
        params = {
            "lat": f"{lat:.4f}",
            "lon": f"{lon:.4f}",
            "units": units.api_value,
            "appid": api_key,
        }
        self.logger.debug("Fetching OpenWeather data for (%.4f, %.4f) in %s", lat, lon, units.value)
        current_payload = await self._request_json(
            CURRENT_ENDPOINT, params=params, context="current conditions"
        )
        forecast_payload = await self._request_json(
            FORECAST_ENDPOINT, params=params, context="forecast"
        )
        return self.normalize(current_payload, forecast_payload)

    async def _request_json(
        self, endpoint: str, *, params: dict[str, str], context: str
    ) -> dict[str, Any]:
        try:
            response = await self._client.get(endpoint, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise WeatherNetworkError(
                f"OpenWeather {context} failed with status {status}: "
                f"{sanitize_text(exc.response.text[:300])}",
                status_code=status,
            ) from exc
        except httpx.HTTPError as exc:
            raise WeatherNetworkError(
                f"OpenWeather {context} request failed: {sanitize_text(str(exc)) or type(exc).__name__}"
            ) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise WeatherDecodeError(f"OpenWeather {context} returned non-JSON response.") from exc

        if not isinstance(payload, dict):
            raise WeatherDecodeError(
                f"OpenWeather {context} returned unexpected payload type {type(payload).__name__}."
            )
        return payload

    def normalize(
        self,
        current_payload: dict[str, Any],
        forecast_payload: dict[str, Any],
        *,
        now: datetime | None = None,
    ) -> WeatherSnapshot:
        """Map the two OpenWeather payloads into one ``WeatherSnapshot``."""
        main = current_payload.get("main")
        if not isinstance(main, dict):
            raise WeatherDecodeError("OpenWeather current payload missing 'main' object.")
        temperature = self._as_float(main.get("temp"))
        feels_like = self._as_float(main.get("feels_like"))
        if temperature is None or feels_like is None:
            raise WeatherDecodeError("OpenWeather current payload missing 'main.temp'/'feels_like'.")

        city = forecast_payload.get("city")
        items = forecast_payload.get("list")
        if not isinstance(city, dict) or not isinstance(items, list):
            raise WeatherDecodeError("OpenWeather forecast payload missing 'city' or 'list'.")
        zone = timezone(timedelta(seconds=self._as_int(city.get("timezone")) or 0))

        first_weather = self._first_weather(current_payload)
        wind = current_payload.get("wind")
        sys_info = current_payload.get("sys")
        if not isinstance(sys_info, dict):
            sys_info = {}
        current = CurrentConditions(
            temperature=temperature,
            feels_like=feels_like,
            description=self._capitalize(first_weather.get("description")) or "Unknown",
            icon=self._as_str(first_weather.get("icon")),
            humidity=self._as_int(main.get("humidity")),
            wind_speed=self._as_float(wind.get("speed")) if isinstance(wind, dict) else None,
        )

        entries = [self._parse_entry(item) for item in items if isinstance(item, dict)]
        hourly = [
            HourlyForecast(
                time=entry["time"],
                temperature=entry["temp"],
                icon=entry["icon"],
                precipitation_chance=entry["pop"],
            )
            for entry in entries[: self._hourly_limit]
        ]

        return WeatherSnapshot(
            location_label=self._as_str(city.get("name")) or "Current location",
            current=current,
            hourly=hourly,
            tomorrow=self._tomorrow(entries, zone, now or datetime.now(UTC)),
            sunrise=self._epoch(sys_info.get("sunrise")),
            sunset=self._epoch(sys_info.get("sunset")),
        )

    def _parse_entry(self, item: dict[str, Any]) -> dict[str, Any]:
        time = self._epoch(item.get("dt"))
        main = item.get("main")
        if time is None or not isinstance(main, dict):
            raise WeatherDecodeError("OpenWeather forecast entry missing 'dt' or 'main'.")
        temp = self._as_float(main.get("temp"))
        if temp is None:
            raise WeatherDecodeError("OpenWeather forecast entry missing 'main.temp'.")
        pop = self._as_float(item.get("pop"))
        weather = self._first_weather(item)
        return {
            "time": time,
            "temp": temp,
            "temp_min": self._as_float(main.get("temp_min")),
            "temp_max": self._as_float(main.get("temp_max")),
            "icon": self._as_str(weather.get("icon")),
            "description": self._capitalize(weather.get("description")),
            "pop": min(max(pop, 0.0), 1.0) if pop is not None else None,
        }

    @staticmethod
    def _tomorrow(
        entries: list[dict[str, Any]], zone: timezone, now: datetime
    ) -> DailyForecast | None:
        tomorrow_date = now.astimezone(zone).date() + timedelta(days=1)
        matching = [e for e in entries if e["time"].astimezone(zone).date() == tomorrow_date]
        if not matching:
            return None
        mins = [e["temp_min"] for e in matching if e["temp_min"] is not None]
        maxes = [e["temp_max"] for e in matching if e["temp_max"] is not None]
        return DailyForecast(
            date=datetime.combine(tomorrow_date, datetime.min.time(), tzinfo=zone),
            min_temp=min(mins) if mins else min(e["temp"] for e in matching),
            max_temp=max(maxes) if maxes else max(e["temp"] for e in matching),
            description=matching[0]["description"] or "N/A",
            icon=matching[0]["icon"],
        )

    @staticmethod
    def _first_weather(payload: dict[str, Any]) -> dict[str, Any]:
        weather = payload.get("weather")
        if isinstance(weather, list) and weather and isinstance(weather[0], dict):
            return weather[0]
        return {}

    @classmethod
    def _capitalize(cls, value: Any) -> str | None:
        text = cls._as_str(value)
        if text is None:
            return None
        return text[0].upper() + text[1:]

    @staticmethod
    def _as_str(value: Any) -> str | None:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @staticmethod
    def _as_int(value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        return None

    @staticmethod
    def _as_float(value: Any) -> float | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return float(value)
        return None

    @staticmethod
    def _epoch(value: Any) -> datetime | None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return datetime.fromtimestamp(value, tz=UTC)
