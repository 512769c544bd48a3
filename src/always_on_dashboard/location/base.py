"""Provider contracts consumed by the location acquirer."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from .models import FixAccuracy, GeoFix, LocationSource, SourceCriteria


class PrimaryLocationProvider(Protocol):
    """Fused-style provider: fast fresh fixes plus a cached last fix."""

    async def request_fix(self, accuracy: FixAccuracy) -> GeoFix | None:
        """Return a fresh fix, ``None`` when none is available, or raise."""

    async def last_known_fix(self) -> GeoFix | None:
        """Return the provider's cached last fix, if any."""


class LocationSubscription(Protocol):
    def cancel(self) -> None:
        """Unregister the pending update; safe to call more than once."""


class SecondaryLocationProvider(Protocol):
    """Legacy provider with per-source caches and callback-delivered updates."""

    def sources(self) -> Sequence[LocationSource]:
        """Sources queried for cached fixes."""

    def last_known_fix(self, source: LocationSource) -> GeoFix | None:
        """Cached fix for one source; may raise when the source is disabled."""

    def best_source(self, criteria: SourceCriteria) -> LocationSource | None:
        """Best enabled source matching ``criteria``."""

    def request_single_update(
        self, source: LocationSource, callback: Callable[[GeoFix], None]
    ) -> LocationSubscription:
        """Register for exactly one update; raises synchronously if registration fails.

        ``callback`` must be invoked on the event loop thread.
        """
