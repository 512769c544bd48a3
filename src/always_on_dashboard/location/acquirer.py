"""Tiered location acquisition with fallback to cached and legacy providers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from ..exceptions import LocationUnavailableError
from .base import PrimaryLocationProvider, SecondaryLocationProvider
from .models import COARSE_LOW_POWER, AccuracyTier, FixAccuracy, GeoFix, LocationSource

LEGACY_UPDATE_TIMEOUT_SECONDS = 12.0

Sleep = Callable[[float], Awaitable[None]]


class AcquisitionStep(str, Enum):
    """Fallback tiers, attempted in declaration order."""

    PRIMARY_FRESH = "primary_fresh"
    PRIMARY_LAST_KNOWN = "primary_last_known"
    SECONDARY_CACHED = "secondary_cached"
    SECONDARY_LIVE = "secondary_live"


def next_step(
    step: AcquisitionStep, *, high_accuracy: bool, raised: bool
) -> AcquisitionStep | None:
    """Step to try after ``step`` produced no fix.

    ``raised`` tells whether the step failed with an error rather than simply
    returning nothing. High-accuracy requests never fall back to stale fixes.
    """
    if step is AcquisitionStep.PRIMARY_FRESH:
        if high_accuracy:
            return AcquisitionStep.SECONDARY_LIVE
        return AcquisitionStep.SECONDARY_CACHED if raised else AcquisitionStep.PRIMARY_LAST_KNOWN
    if step is AcquisitionStep.PRIMARY_LAST_KNOWN:
        return AcquisitionStep.SECONDARY_CACHED
    if step is AcquisitionStep.SECONDARY_CACHED:
        return AcquisitionStep.SECONDARY_LIVE
    return None


class LocationAcquirer:
    """Produce a best-effort ``GeoFix`` from a primary and a secondary provider.

    ``acquire`` walks the tiers in ``AcquisitionStep`` order and returns on the
    first fix. "No fix" and provider errors both fall through to the next
    tier; the most recent error is kept and reported if every tier misses.
    Cancelling the awaiting task releases the pending legacy subscription and
    its timer before ``CancelledError`` propagates.
    """

    def __init__(
        self,
        primary: PrimaryLocationProvider,
        secondary: SecondaryLocationProvider,
        logger: logging.Logger,
        *,
        legacy_timeout_seconds: float = LEGACY_UPDATE_TIMEOUT_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.logger = logger
        self.legacy_timeout_seconds = legacy_timeout_seconds
        self._sleep = sleep

    async def acquire(self, high_accuracy: bool = False) -> GeoFix:
        step: AcquisitionStep | None = AcquisitionStep.PRIMARY_FRESH
        last_error: Exception | None = None

        while step is not None:
            if step is AcquisitionStep.SECONDARY_LIVE:
                return await self._secondary_live(last_error)
            try:
                fix = await self._run_step(step, high_accuracy)
            except Exception as exc:
                self.logger.info("Location tier %s failed: %s", step.value, exc)
                last_error = exc
                step = next_step(step, high_accuracy=high_accuracy, raised=True)
                continue
            if fix is not None:
                self.logger.debug("Location tier %s produced a fix", step.value)
                return fix
            if step is not AcquisitionStep.SECONDARY_CACHED:
                last_error = LocationUnavailableError()
            step = next_step(step, high_accuracy=high_accuracy, raised=False)

        raise LocationUnavailableError(cause=last_error)  # pragma: no cover

    async def _run_step(self, step: AcquisitionStep, high_accuracy: bool) -> GeoFix | None:
        if step is AcquisitionStep.PRIMARY_FRESH:
            return await self.primary_fresh(high_accuracy)
        if step is AcquisitionStep.PRIMARY_LAST_KNOWN:
            return await self.primary_last_known()
        return self.secondary_cached()

    async def primary_fresh(self, high_accuracy: bool) -> GeoFix | None:
        accuracy = FixAccuracy.HIGH if high_accuracy else FixAccuracy.BALANCED
        fix = await self.primary.request_fix(accuracy)
        if fix is None:
            return None
        tier = AccuracyTier.PRECISE if high_accuracy else AccuracyTier.BALANCED
        return fix.model_copy(update={"accuracy_tier": tier})

    async def primary_last_known(self) -> GeoFix | None:
        fix = await self.primary.last_known_fix()
        if fix is None:
            return None
        return fix.model_copy(update={"accuracy_tier": AccuracyTier.LAST_KNOWN})

    def secondary_cached(self) -> GeoFix | None:
        """Newest cached fix across all secondary sources; per-source errors are ignored."""
        candidates: list[GeoFix] = []
        for source in self.secondary.sources():
            try:
                fix = self.secondary.last_known_fix(source)
            except Exception as exc:
                self.logger.debug("Cached fix lookup for %s failed: %s", source.value, exc)
                continue
            if fix is not None:
                candidates.append(fix)
        if not candidates:
            return None
        newest = max(candidates, key=lambda fix: fix.captured_at)
        return newest.model_copy(update={"accuracy_tier": AccuracyTier.LAST_KNOWN})

    async def _secondary_live(self, last_error: Exception | None) -> GeoFix:
        loop = asyncio.get_running_loop()
        update: asyncio.Future[GeoFix] = loop.create_future()

        def on_update(fix: GeoFix) -> None:
            if not update.done():
                update.set_result(fix)

        source = self.secondary.best_source(COARSE_LOW_POWER) or LocationSource.NETWORK
        try:
            subscription = self.secondary.request_single_update(source, on_update)
        except Exception as exc:
            self.logger.warning("Legacy provider failed: %s", exc)
            cause = last_error or exc
            raise LocationUnavailableError(_describe(cause), cause=cause) from exc

        timer = asyncio.ensure_future(self._sleep(self.legacy_timeout_seconds))
        try:
            await asyncio.wait({update, timer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            timer.cancel()
            subscription.cancel()
            if not update.done():
                update.cancel()

        if update.done() and not update.cancelled():
            return update.result().model_copy(update={"accuracy_tier": AccuracyTier.LEGACY})

        self.logger.warning(
            "Legacy %s update timed out after %.0fs", source.value, self.legacy_timeout_seconds
        )
        raise LocationUnavailableError(_describe(last_error), cause=last_error)


def _describe(error: Exception | None) -> str:
    if error is None:
        return "Location unavailable"
    return str(error) or type(error).__name__
