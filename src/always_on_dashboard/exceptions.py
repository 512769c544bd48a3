"""Application exception classes."""

from __future__ import annotations


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""


class LocationError(Exception):
    """Base class for location acquisition failures."""


class LocationPermissionError(LocationError):
    """Raised when a location source refuses access."""


class LocationUnavailableError(LocationError):
    """Raised when every location tier was exhausted or timed out."""

    def __init__(self, message: str = "Location unavailable", *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class WeatherProviderError(Exception):
    """Raised when weather provider requests or normalization fail."""


class MissingCredentialError(WeatherProviderError):
    """Raised before any request when no API key is available."""


class WeatherNetworkError(WeatherProviderError):
    """Raised for transport failures and non-success HTTP statuses."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class WeatherDecodeError(WeatherProviderError):
    """Raised when a weather payload cannot be parsed into a snapshot."""


class CalendarError(Exception):
    """Raised when the calendar source cannot be read."""
