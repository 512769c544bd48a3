"""Location acquisition: provider contracts, concrete providers and the tiered acquirer."""

from .acquirer import AcquisitionStep, LocationAcquirer, next_step
from .base import LocationSubscription, PrimaryLocationProvider, SecondaryLocationProvider
from .models import AccuracyTier, FixAccuracy, GeoFix, LocationSource, SourceCriteria
from .providers import ConfiguredLocationProvider, IpGeolocationProvider

__all__ = [
    "AccuracyTier",
    "AcquisitionStep",
    "ConfiguredLocationProvider",
    "FixAccuracy",
    "GeoFix",
    "IpGeolocationProvider",
    "LocationAcquirer",
    "LocationSource",
    "LocationSubscription",
    "PrimaryLocationProvider",
    "SecondaryLocationProvider",
    "SourceCriteria",
    "next_step",
]
