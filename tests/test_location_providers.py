"""Tests for the IP geolocation and configured-coordinate location providers."""

from __future__ import annotations

import asyncio
import logging
from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from always_on_dashboard.exceptions import (
    LocationError,
    LocationPermissionError,
    LocationUnavailableError,
)
from always_on_dashboard.location.models import (
    COARSE_LOW_POWER,
    FixAccuracy,
    GeoFix,
    LocationSource,
)
from always_on_dashboard.location.providers import (
    ConfiguredLocationProvider,
    IpGeolocationProvider,
)

LOGGER = logging.getLogger("test_location_providers")


def _make_settings(**overrides: Any) -> Any:
    defaults = {
        "location_lookup_url": "http://ip-api.test/json/",
        "location_timeout_seconds": 2.0,
        "dashboard_latitude": None,
        "dashboard_longitude": None,
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _ip_provider(handler: Any) -> IpGeolocationProvider:
    return IpGeolocationProvider(_make_settings(), LOGGER, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_ip_lookup_returns_fix_and_remembers_it() -> None:
    provider = _ip_provider(
        lambda request: httpx.Response(200, json={"status": "success", "lat": 52.37, "lon": 4.89})
    )

    assert await provider.last_known_fix() is None
    fix = await provider.request_fix(FixAccuracy.BALANCED)
    await provider.aclose()

    assert fix is not None
    assert (fix.latitude, fix.longitude) == (52.37, 4.89)
    assert await provider.last_known_fix() == fix


@pytest.mark.asyncio
async def test_ip_lookup_failure_status_yields_no_fix() -> None:
    provider = _ip_provider(
        lambda request: httpx.Response(200, json={"status": "fail", "message": "reserved range"})
    )

    assert await provider.request_fix(FixAccuracy.HIGH) is None
    assert await provider.last_known_fix() is None
    await provider.aclose()


@pytest.mark.asyncio
async def test_ip_lookup_http_error_raises_location_error() -> None:
    provider = _ip_provider(lambda request: httpx.Response(503, text="busy"))

    with pytest.raises(LocationError):
        await provider.request_fix(FixAccuracy.BALANCED)
    await provider.aclose()


@pytest.mark.asyncio
async def test_ip_lookup_forbidden_raises_permission_error() -> None:
    provider = _ip_provider(lambda request: httpx.Response(403, text="denied"))

    with pytest.raises(LocationPermissionError):
        await provider.request_fix(FixAccuracy.BALANCED)
    await provider.aclose()


def test_configured_provider_without_coordinates_is_disabled() -> None:
    provider = ConfiguredLocationProvider.from_settings(_make_settings(), LOGGER)

    assert provider.best_source(COARSE_LOW_POWER) is None
    assert all(provider.last_known_fix(source) is None for source in provider.sources())
    with pytest.raises(LocationUnavailableError):
        provider.request_single_update(LocationSource.NETWORK, lambda fix: None)


def test_configured_provider_serves_network_cache() -> None:
    provider = ConfiguredLocationProvider(59.91, 10.75, LOGGER)

    assert provider.best_source(COARSE_LOW_POWER) is LocationSource.NETWORK
    assert provider.last_known_fix(LocationSource.GPS) is None
    cached = provider.last_known_fix(LocationSource.NETWORK)
    assert cached is not None and cached.latitude == 59.91


@pytest.mark.asyncio
async def test_single_update_is_delivered_once_and_releases_subscription() -> None:
    provider = ConfiguredLocationProvider(59.91, 10.75, LOGGER)
    received: list[GeoFix] = []

    subscription = provider.request_single_update(LocationSource.NETWORK, received.append)
    assert provider.active_subscriptions == 1
    await asyncio.sleep(0.01)

    assert len(received) == 1
    assert provider.active_subscriptions == 0
    subscription.cancel()
    assert provider.active_subscriptions == 0


@pytest.mark.asyncio
async def test_cancelled_update_is_never_delivered() -> None:
    provider = ConfiguredLocationProvider(59.91, 10.75, LOGGER, delivery_delay=0.05)
    received: list[GeoFix] = []

    subscription = provider.request_single_update(LocationSource.NETWORK, received.append)
    subscription.cancel()
    await asyncio.sleep(0.1)

    assert received == []
    assert provider.active_subscriptions == 0
