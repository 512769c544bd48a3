"""Tests for the OpenWeather provider: requests, error mapping and normalization."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from always_on_dashboard.exceptions import (
    MissingCredentialError,
    WeatherDecodeError,
    WeatherNetworkError,
)
from always_on_dashboard.weather.models import UnitSystem
from always_on_dashboard.weather.openweather import OpenWeatherProvider

NOW = datetime(2026, 10, 17, 14, 0, tzinfo=UTC)


def _epoch(*args: int) -> int:
    return int(datetime(*args, tzinfo=UTC).timestamp())


def _make_settings(**overrides: Any) -> Any:
    defaults = {
        "openweather_api_key": "env-key",
        "openweather_base_url": "https://api.openweathermap.org/",
        "weather_timeout_seconds": 5.0,
        "weather_hourly_limit": 2,
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _current_payload() -> dict[str, Any]:
    return {
        "name": "Brooklyn",
        "main": {"temp": 21.4, "feels_like": 20.9, "humidity": 56},
        "weather": [{"description": "scattered clouds", "icon": "03d"}],
        "wind": {"speed": 3.6},
        "sys": {"sunrise": _epoch(2026, 10, 17, 11, 6), "sunset": _epoch(2026, 10, 17, 22, 13)},
    }


def _forecast_entry(dt: int, temp: float, low: float, high: float, **extra: Any) -> dict[str, Any]:
    entry = {
        "dt": dt,
        "main": {"temp": temp, "temp_min": low, "temp_max": high},
        "weather": [{"description": "light rain", "icon": "10n"}],
    }
    entry.update(extra)
    return entry


def _forecast_payload() -> dict[str, Any]:
    # City is UTC-4: 2026-10-18 local runs from 04:00Z on the 18th to 04:00Z on the 19th.
    return {
        "city": {"name": "Brooklyn", "timezone": -4 * 3600},
        "list": [
            _forecast_entry(_epoch(2026, 10, 17, 15), 22.0, 21.0, 23.0, pop=1.2),
            _forecast_entry(_epoch(2026, 10, 18, 6), 11.0, 10.0, 12.0, pop=0.35),
            _forecast_entry(_epoch(2026, 10, 18, 15), 16.0, 14.0, 18.0),
            _forecast_entry(_epoch(2026, 10, 19, 3), 10.0, 9.0, 11.0),
            _forecast_entry(_epoch(2026, 10, 19, 6), 5.0, 4.0, 6.0),
        ],
    }


def _make_provider(
    handler: Any, **settings_overrides: Any
) -> OpenWeatherProvider:
    return OpenWeatherProvider(
        settings=_make_settings(**settings_overrides),
        logger=logging.getLogger("test_openweather_provider"),
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_fetch_requests_both_endpoints_with_units_and_key() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/weather"):
            return httpx.Response(200, json=_current_payload())
        return httpx.Response(200, json=_forecast_payload())

    provider = _make_provider(handler)
    snapshot = await provider.fetch(40.71278, -74.006, UnitSystem.IMPERIAL, None)
    await provider.aclose()

    assert [request.url.path for request in seen] == ["/data/2.5/weather", "/data/2.5/forecast"]
    params = seen[0].url.params
    assert params["lat"] == "40.7128"
    assert params["lon"] == "-74.0060"
    assert params["units"] == "imperial"
    assert params["appid"] == "env-key"
    assert snapshot.location_label == "Brooklyn"


@pytest.mark.asyncio
async def test_override_credential_takes_precedence_over_default() -> None:
    keys: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        keys.append(request.url.params["appid"])
        if request.url.path.endswith("/weather"):
            return httpx.Response(200, json=_current_payload())
        return httpx.Response(200, json=_forecast_payload())

    provider = _make_provider(handler)
    await provider.fetch(1.0, 2.0, UnitSystem.METRIC, "user-key")
    await provider.aclose()

    assert keys == ["user-key", "user-key"]


@pytest.mark.asyncio
async def test_missing_credential_fails_before_any_request() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    provider = _make_provider(handler, openweather_api_key=None)
    with pytest.raises(MissingCredentialError):
        await provider.fetch(1.0, 2.0, UnitSystem.METRIC, "   ")
    await provider.aclose()

    assert calls == []


@pytest.mark.asyncio
async def test_unauthorized_status_maps_to_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"cod": 401, "message": "Invalid API key"})

    provider = _make_provider(handler, openweather_api_key="secret-key-123")
    with pytest.raises(WeatherNetworkError) as exc_info:
        await provider.fetch(1.0, 2.0, UnitSystem.METRIC, None)
    await provider.aclose()

    assert exc_info.value.status_code == 401
    assert "401" in str(exc_info.value)
    assert "secret-key-123" not in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_failure_maps_to_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = _make_provider(handler)
    with pytest.raises(WeatherNetworkError) as exc_info:
        await provider.fetch(1.0, 2.0, UnitSystem.METRIC, None)
    await provider.aclose()

    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_non_json_body_maps_to_decode_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>maintenance</html>")

    provider = _make_provider(handler)
    with pytest.raises(WeatherDecodeError):
        await provider.fetch(1.0, 2.0, UnitSystem.METRIC, None)
    await provider.aclose()


@pytest.mark.asyncio
async def test_unexpected_payload_shape_maps_to_decode_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps([1, 2, 3]).encode())

    provider = _make_provider(handler)
    with pytest.raises(WeatherDecodeError):
        await provider.fetch(1.0, 2.0, UnitSystem.METRIC, None)
    await provider.aclose()


def test_normalize_maps_current_hourly_and_tomorrow() -> None:
    provider = _make_provider(lambda request: httpx.Response(500))

    snapshot = provider.normalize(_current_payload(), _forecast_payload(), now=NOW)

    current = snapshot.current
    assert current.temperature == 21.4
    assert current.feels_like == 20.9
    assert current.description == "Scattered clouds"
    assert current.icon == "03d"
    assert current.humidity == 56
    assert current.wind_speed == 3.6

    assert len(snapshot.hourly) == 2
    assert snapshot.hourly[0].precipitation_chance == 1.0
    assert snapshot.hourly[1].precipitation_chance == 0.35
    assert snapshot.hourly[0].time == datetime(2026, 10, 17, 15, tzinfo=UTC)

    tomorrow = snapshot.tomorrow
    assert tomorrow is not None
    assert tomorrow.min_temp == 9.0
    assert tomorrow.max_temp == 18.0
    assert tomorrow.description == "Light rain"
    assert tomorrow.date.date().isoformat() == "2026-10-18"

    assert snapshot.sunrise == datetime(2026, 10, 17, 11, 6, tzinfo=UTC)
    assert snapshot.sunset == datetime(2026, 10, 17, 22, 13, tzinfo=UTC)


def test_normalize_fills_defaults_for_sparse_payloads() -> None:
    provider = _make_provider(lambda request: httpx.Response(500))
    current = {"main": {"temp": 3.0, "feels_like": 0.5}}
    forecast = {"city": {}, "list": []}

    snapshot = provider.normalize(current, forecast, now=NOW)

    assert snapshot.location_label == "Current location"
    assert snapshot.current.description == "Unknown"
    assert snapshot.current.wind_speed is None
    assert snapshot.hourly == []
    assert snapshot.tomorrow is None
    assert snapshot.sunrise is None


def test_normalize_rejects_missing_temperature() -> None:
    provider = _make_provider(lambda request: httpx.Response(500))

    with pytest.raises(WeatherDecodeError):
        provider.normalize({"main": {"humidity": 40}}, _forecast_payload(), now=NOW)
