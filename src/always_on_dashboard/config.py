"""Typed settings loader for the always-on dashboard."""

from __future__ import annotations

import locale
from pathlib import Path
from typing import Any, Literal

from pydantic import AnyUrl, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )

    openweather_api_key: str | None = Field(
        default=None, alias="OPENWEATHER_API_KEY", repr=False
    )
    openweather_base_url: AnyUrl = Field(
        default=AnyUrl("https://api.openweathermap.org/"),
        alias="OPENWEATHER_BASE_URL",
    )
    weather_timeout_seconds: float = Field(default=15.0, alias="WEATHER_TIMEOUT_SECONDS")
    weather_hourly_limit: int = Field(default=12, alias="WEATHER_HOURLY_LIMIT")
    weather_refresh_interval_seconds: float = Field(
        default=15 * 60,
        alias="WEATHER_REFRESH_INTERVAL_SECONDS",
    )

    location_lookup_url: AnyUrl = Field(
        default=AnyUrl("http://ip-api.com/json/"),
        alias="LOCATION_LOOKUP_URL",
    )
    location_timeout_seconds: float = Field(default=10.0, alias="LOCATION_TIMEOUT_SECONDS")
    location_legacy_timeout_seconds: float = Field(
        default=12.0,
        alias="LOCATION_LEGACY_TIMEOUT_SECONDS",
    )
    dashboard_latitude: float | None = Field(default=None, alias="DASHBOARD_LATITUDE")
    dashboard_longitude: float | None = Field(default=None, alias="DASHBOARD_LONGITUDE")
    dashboard_region: str | None = Field(default=None, alias="DASHBOARD_REGION")

    calendar_events_file: Path | None = Field(default=None, alias="CALENDAR_EVENTS_FILE")

    @field_validator(
        "openweather_api_key",
        "dashboard_latitude",
        "dashboard_longitude",
        "dashboard_region",
        "calendar_events_file",
        mode="before",
    )
    @classmethod
    def empty_string_to_none(cls, value: Any) -> Any:
        """Treat empty env-string values as unset."""
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @model_validator(mode="after")
    def validate_ranges(self) -> Settings:
        """Validate timeouts, intervals and fallback coordinates."""
        if self.weather_timeout_seconds <= 0:
            raise ValueError("WEATHER_TIMEOUT_SECONDS must be > 0.")
        if self.weather_hourly_limit <= 0:
            raise ValueError("WEATHER_HOURLY_LIMIT must be > 0.")
        if self.weather_refresh_interval_seconds <= 0:
            raise ValueError("WEATHER_REFRESH_INTERVAL_SECONDS must be > 0.")
        if self.location_timeout_seconds <= 0:
            raise ValueError("LOCATION_TIMEOUT_SECONDS must be > 0.")
        if self.location_legacy_timeout_seconds <= 0:
            raise ValueError("LOCATION_LEGACY_TIMEOUT_SECONDS must be > 0.")

        has_lat = self.dashboard_latitude is not None
        has_lon = self.dashboard_longitude is not None
        if has_lat != has_lon:
            raise ValueError("DASHBOARD_LATITUDE and DASHBOARD_LONGITUDE must be set together.")
        if has_lat and not (-90 <= self.dashboard_latitude <= 90):
            raise ValueError("DASHBOARD_LATITUDE must be between -90 and 90.")
        if has_lon and not (-180 <= self.dashboard_longitude <= 180):
            raise ValueError("DASHBOARD_LONGITUDE must be between -180 and 180.")
        if self.dashboard_region is not None:
            self.dashboard_region = self.dashboard_region.strip().upper()
        return self

    def resolved_region(self) -> str | None:
        """Region code from settings, else from the process locale (``en_US`` -> ``US``)."""
        if self.dashboard_region:
            return self.dashboard_region
        name, _encoding = locale.getlocale()
        if name and "_" in name:
            return name.split("_", 1)[1].split(".", 1)[0].upper()
        return None

    def safe_summary(self) -> dict[str, Any]:
        """Return config summary safe for logging (no credentials)."""
        return {
            "openweather_base_url": str(self.openweather_base_url),
            "openweather_api_key_set": bool(self.openweather_api_key),
            "weather_timeout_seconds": self.weather_timeout_seconds,
            "weather_refresh_interval_seconds": self.weather_refresh_interval_seconds,
            "location_lookup_url": str(self.location_lookup_url),
            "location_legacy_timeout_seconds": self.location_legacy_timeout_seconds,
            "fallback_coordinates_set": self.dashboard_latitude is not None,
            "region": self.resolved_region(),
            "calendar_events_file": (
                str(self.calendar_events_file) if self.calendar_events_file else None
            ),
        }


def load_settings() -> Settings:
    """Load and validate settings, raising ConfigError on failure."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed reading environment/.env: {exc}") from exc
