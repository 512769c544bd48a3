"""Concrete location providers for a desktop or kiosk host."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import httpx

from ..config import Settings
from ..exceptions import LocationError, LocationPermissionError, LocationUnavailableError
from ..redaction import sanitize_text
from .models import AccuracyTier, FixAccuracy, GeoFix, LocationSource, SourceCriteria


class IpGeolocationProvider:
    """Primary provider backed by an ip-api style JSON lookup.

    The lookup is city-level whatever accuracy is requested. The last
    successful fix is remembered in memory and served as the last-known fix.
    """

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.logger = logger
        self._url = str(settings.location_lookup_url)
        self._client = httpx.AsyncClient(
            timeout=settings.location_timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._last_fix: GeoFix | None = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request_fix(self, accuracy: FixAccuracy) -> GeoFix | None:
        try:
            response = await self._client.get(self._url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code in (401, 403):
                raise LocationPermissionError(
                    f"IP geolocation refused access (status {exc.response.status_code})"
                ) from exc
            raise LocationError(
                f"IP geolocation failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LocationError(
                f"IP geolocation request failed: {sanitize_text(str(exc)) or type(exc).__name__}"
            ) from exc
        except ValueError as exc:
            raise LocationError("IP geolocation returned non-JSON response.") from exc

        fix = self._parse(payload)
        if fix is None:
            self.logger.info("IP geolocation returned no fix (accuracy=%s)", accuracy.value)
            return None
        self._last_fix = fix
        return fix

    async def last_known_fix(self) -> GeoFix | None:
        return self._last_fix

    @staticmethod
    def _parse(payload: Any) -> GeoFix | None:
        if not isinstance(payload, dict) or payload.get("status", "success") != "success":
            return None
        lat = payload.get("lat", payload.get("latitude"))
        lon = payload.get("lon", payload.get("longitude"))
        if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
            return None
        return GeoFix(
            latitude=float(lat),
            longitude=float(lon),
            captured_at=datetime.now(UTC),
            accuracy_tier=AccuracyTier.BALANCED,
        )


class _TimerSubscription:
    def __init__(self, handle: asyncio.TimerHandle, on_cancel: Callable[[], None]) -> None:
        self._handle = handle
        self._on_cancel = on_cancel
        self._active = True

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._handle.cancel()
        self._on_cancel()


class ConfiguredLocationProvider:
    """Secondary provider serving fixed coordinates from settings.

    The coordinates act as the network source's cache and as its live
    update, delivered after ``delivery_delay`` seconds on the running loop.
    With no coordinates configured every source is disabled.
    """

    def __init__(
        self,
        latitude: float | None,
        longitude: float | None,
        logger: logging.Logger,
        *,
        delivery_delay: float = 0.0,
    ) -> None:
        self.logger = logger
        self.delivery_delay = delivery_delay
        self.active_subscriptions = 0
        self._fix: GeoFix | None = None
        if latitude is not None and longitude is not None:
            self._fix = GeoFix(
                latitude=latitude,
                longitude=longitude,
                captured_at=datetime.now(UTC),
                accuracy_tier=AccuracyTier.LAST_KNOWN,
            )

    @classmethod
    def from_settings(cls, settings: Settings, logger: logging.Logger) -> ConfiguredLocationProvider:
        return cls(settings.dashboard_latitude, settings.dashboard_longitude, logger)

    def sources(self) -> Sequence[LocationSource]:
        return (LocationSource.GPS, LocationSource.NETWORK)

    def last_known_fix(self, source: LocationSource) -> GeoFix | None:
        if source is LocationSource.NETWORK:
            return self._fix
        return None

    def best_source(self, criteria: SourceCriteria) -> LocationSource | None:
        if self._fix is None:
            return None
        return LocationSource.NETWORK

    def request_single_update(
        self, source: LocationSource, callback: Callable[[GeoFix], None]
    ) -> _TimerSubscription:
        fix = self._fix
        if fix is None or source is not LocationSource.NETWORK:
            raise LocationUnavailableError(f"Location source '{source.value}' is disabled")

        loop = asyncio.get_running_loop()
        self.active_subscriptions += 1
        subscription: _TimerSubscription

        def deliver() -> None:
            subscription.cancel()
            callback(fix.model_copy(update={"captured_at": datetime.now(UTC)}))

        handle = loop.call_later(self.delivery_delay, deliver)
        subscription = _TimerSubscription(handle, self._release)
        return subscription

    def _release(self) -> None:
        self.active_subscriptions -= 1
