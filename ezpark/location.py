"""Device location acquisition.

The provider asks a position source for a high-accuracy fix first. If that
has not succeeded inside a short watchdog window it also asks for a cheaper
low-accuracy fix, and whichever succeeds first wins. The loser is cancelled
and anything it produces afterwards is dropped.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Protocol

from ezpark.config import Settings, settings as default_settings
from ezpark.errors import (
    LocationErrorReason,
    LocationRequestInProgress,
    LocationUnavailable,
    PositionError,
)
from ezpark.models import LocatedCoordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionOptions:
    high_accuracy: bool
    timeout_s: float
    maximum_age_s: float = 0.0


class PositionSource(Protocol):
    async def get_position(self, options: PositionOptions) -> LocatedCoordinate:
        """Return a fix or raise PositionError."""
        ...


class FixedPositionSource:
    """Always answers with the same coordinate, e.g. a configured default."""

    def __init__(self, fix: LocatedCoordinate):
        self.fix = fix

    @classmethod
    def from_settings(cls, s: Settings = default_settings) -> FixedPositionSource:
        return cls(
            LocatedCoordinate(
                latitude=s.default_latitude,
                longitude=s.default_longitude,
                accuracy=s.default_accuracy_m,
            )
        )

    async def get_position(self, options: PositionOptions) -> LocatedCoordinate:
        return self.fix


class CoordinateProvider:
    def __init__(self, source: PositionSource, config: Settings = default_settings):
        self._source = source
        self._config = config
        self._in_flight = False
        self._last_fix: LocatedCoordinate | None = None
        self._last_fix_at = 0.0

    @property
    def busy(self) -> bool:
        return self._in_flight

    async def acquire_location(self) -> LocatedCoordinate:
        if self._in_flight:
            raise LocationRequestInProgress()

        self._in_flight = True
        try:
            return await self._race()
        finally:
            self._in_flight = False

    async def _race(self) -> LocatedCoordinate:
        cfg = self._config
        high = asyncio.ensure_future(
            self._request(PositionOptions(True, cfg.high_accuracy_timeout_s, 0.0))
        )
        tasks = [high]
        failures: dict[asyncio.Future, BaseException] = {}
        try:
            done, _ = await asyncio.wait({high}, timeout=cfg.fallback_after_s)
            if high in done:
                if high.exception() is None:
                    return self._accept(high.result())
                failures[high] = high.exception()
                logger.info("High accuracy location failed (%s), trying lower accuracy", failures[high])
            else:
                logger.info("High accuracy location taking too long, trying lower accuracy")

            low = asyncio.ensure_future(
                self._request(
                    PositionOptions(False, cfg.low_accuracy_timeout_s, cfg.low_accuracy_max_age_s)
                )
            )
            tasks.append(low)
            pending = {t for t in tasks if not t.done()}
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                # Prefer the high-accuracy fix when both land in the same tick.
                for task in sorted(done, key=tasks.index):
                    if task.exception() is None:
                        return self._accept(task.result())
                    failures[task] = task.exception()
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        # high-accuracy cause first, so the fallback's cause is the last one
        reason = _pick_reason([failures[t] for t in tasks if t in failures])
        logger.warning("Could not get location: %s", reason.value)
        raise LocationUnavailable(reason)

    def _accept(self, fix: LocatedCoordinate) -> LocatedCoordinate:
        if fix is not self._last_fix:
            self._last_fix = fix
            self._last_fix_at = time.monotonic()
        logger.info("Got location, accuracy %.1f m", fix.accuracy)
        return fix

    async def _request(self, options: PositionOptions) -> LocatedCoordinate:
        cached = self._cached(options.maximum_age_s)
        if cached is not None:
            return cached

        try:
            return await asyncio.wait_for(self._source.get_position(options), options.timeout_s)
        except asyncio.TimeoutError as e:
            raise PositionError(LocationErrorReason.TIMEOUT) from e

    def _cached(self, maximum_age_s: float) -> LocatedCoordinate | None:
        if self._last_fix is None or maximum_age_s <= 0:
            return None
        if time.monotonic() - self._last_fix_at > maximum_age_s:
            return None
        return self._last_fix


def _pick_reason(errors: list[BaseException]) -> LocationErrorReason:
    reasons = [e.reason for e in errors if isinstance(e, PositionError)]
    if LocationErrorReason.PERMISSION_DENIED in reasons:
        return LocationErrorReason.PERMISSION_DENIED
    if reasons:
        return reasons[-1]
    return LocationErrorReason.POSITION_UNAVAILABLE
