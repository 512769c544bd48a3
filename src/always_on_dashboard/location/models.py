"""Typed models for location fixes and provider selection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AccuracyTier(str, Enum):
    """Which fallback tier produced a fix, freshest first."""

    PRECISE = "precise"
    BALANCED = "balanced"
    LAST_KNOWN = "last_known"
    LEGACY = "legacy"


class FixAccuracy(str, Enum):
    """Accuracy mode requested from the primary provider."""

    HIGH = "high"
    BALANCED = "balanced"


class LocationSource(str, Enum):
    """Secondary provider sources."""

    GPS = "gps"
    NETWORK = "network"


class GeoFix(BaseModel):
    """A single coordinate reading with capture time and tier."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    captured_at: datetime
    accuracy_tier: AccuracyTier = AccuracyTier.BALANCED


@dataclass(frozen=True, slots=True)
class SourceCriteria:
    """Selection criteria passed to ``SecondaryLocationProvider.best_source``."""

    coarse_accuracy: bool = True
    low_power: bool = True
    altitude_required: bool = False
    bearing_required: bool = False
    speed_required: bool = False
    cost_allowed: bool = False


COARSE_LOW_POWER = SourceCriteria()
