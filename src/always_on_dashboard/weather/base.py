"""Provider-agnostic weather interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import UnitSystem, WeatherSnapshot


class WeatherProvider(ABC):
    """Base contract for weather providers used by the refresh orchestrator."""

    @abstractmethod
    async def fetch(
        self,
        lat: float,
        lon: float,
        units: UnitSystem,
        credential: str | None,
    ) -> WeatherSnapshot:
        """Fetch current conditions and forecast, normalized to a snapshot.

        Raises a ``WeatherProviderError`` subclass on failure; never returns
        partial results.
        """

    @abstractmethod
    async def aclose(self) -> None:
        """Release provider resources."""
