"""Adaptive windowed retrieval of per-driver telemetry.

A session is walked in contiguous windows ``[cursor, cursor + window_ms)``.
The cursor only moves once a window's location data has been accepted.
When the API answers "too much data" the window size halves (down to
``min_window_ms``) and the same span is issued again; the size never grows
back within one fetch.

In dual-stream mode every window also asks for car data.  Both requests
run as separate tasks and are joined before the loop moves on, but only
the location outcome decides whether to advance, shrink or fail.  A failed
car-data window is logged and left out of the result.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from pyopenf1._api.outcome import OutcomeKind, WindowOutcome
from pyopenf1.client import OpenF1Client, Stream
from pyopenf1.config import FetcherConfig
from pyopenf1.exceptions import WindowFloorExceededError
from pyopenf1.models._base import ms_to_iso
from pyopenf1.models.session import SessionBounds, SessionInfo
from pyopenf1.models.telemetry import CarDataSample, DedupKey, LocationSample, TelemetrySample

_logger = logging.getLogger(__name__)

S = TypeVar("S", bound=TelemetrySample)


@dataclasses.dataclass(frozen=True)
class Window:
    """Half-open ``[start_ms, end_ms)`` span requested in one call."""

    start_ms: int
    end_ms: int

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def __str__(self) -> str:
        return f"{ms_to_iso(self.start_ms)} -> {ms_to_iso(self.end_ms)}"


@dataclasses.dataclass
class DualStreamResult:
    """Location and car-data samples for one driver.

    ``failed_windows`` lists the accepted windows whose car-data request
    failed; their car data is absent from ``car_data``.
    """

    location: list[LocationSample] = dataclasses.field(default_factory=list)
    car_data: list[CarDataSample] = dataclasses.field(default_factory=list)
    windows: list[Window] = dataclasses.field(default_factory=list)
    failed_windows: list[Window] = dataclasses.field(default_factory=list)


class SampleAccumulator(Generic[S]):
    """Collects samples, keeping the first one seen per dedup key."""

    def __init__(self) -> None:
        self._seen: set[DedupKey] = set()
        self._samples: list[S] = []

    def __len__(self) -> int:
        return len(self._samples)

    def merge(self, samples: Iterable[S]) -> int:
        """Add unseen samples and return how many were new."""
        added = 0
        for sample in samples:
            key = sample.dedup_key
            if key in self._seen:
                continue
            self._seen.add(key)
            self._samples.append(sample)
            added += 1
        return added

    def sorted(self) -> list[S]:
        """Samples in ascending timestamp order (stable for equal dates)."""
        return sorted(self._samples, key=lambda sample: sample.date)


class WindowFetcher:
    """Walks a session in adaptive windows and gathers one driver's data."""

    def __init__(self, client: OpenF1Client, config: FetcherConfig | None = None) -> None:
        self._client = client
        self._config = config or FetcherConfig()

    @property
    def config(self) -> FetcherConfig:
        return self._config

    async def fetch_driver_chunked(
        self,
        bounds: SessionBounds,
        session_key: int,
        driver_number: int,
    ) -> list[LocationSample]:
        """Fetch location samples for one driver across *bounds*.

        Raises
        ------
        OpenF1TransportError
            A window kept failing after every retry.
        WindowFloorExceededError
            The API rejected the minimum window too many times.
        """
        result = await self._run(bounds, session_key, driver_number, with_car_data=False)
        return result.location

    async def fetch_driver_dual(
        self,
        bounds: SessionBounds,
        session_key: int,
        driver_number: int,
    ) -> DualStreamResult:
        """Fetch location and car data together, car data best-effort."""
        return await self._run(bounds, session_key, driver_number, with_car_data=True)

    async def fetch_session_driver(
        self,
        session: SessionInfo,
        driver_number: int,
        *,
        with_car_data: bool = False,
    ) -> DualStreamResult:
        """Derive bounds from *session* and fetch one driver.

        Raises :class:`InvalidSessionBoundsError` before any request when
        the session dates are unusable.
        """
        bounds = SessionBounds.from_session(session)
        return await self._run(bounds, session.session_key, driver_number, with_car_data=with_car_data)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _fetch_pair(
        self,
        session_key: int,
        driver_number: int,
        window: Window,
        *,
        with_car_data: bool,
    ) -> tuple[WindowOutcome[Any], WindowOutcome[Any] | None]:
        retry = self._config.window_retry
        if not with_car_data:
            outcome = await self._client.fetch_window(
                Stream.LOCATION, session_key, driver_number, window.start_ms, window.end_ms, retry=retry
            )
            return outcome, None

        location_task = asyncio.create_task(
            self._client.fetch_window(
                Stream.LOCATION, session_key, driver_number, window.start_ms, window.end_ms, retry=retry
            )
        )
        car_task = asyncio.create_task(
            self._client.fetch_window(
                Stream.CAR_DATA, session_key, driver_number, window.start_ms, window.end_ms, retry=retry
            )
        )
        try:
            await asyncio.wait({location_task, car_task})
        finally:
            for task in (location_task, car_task):
                if not task.done():
                    task.cancel()
        return location_task.result(), car_task.result()

    def _report(self, done_ms: int, total_ms: int) -> None:
        if self._config.progress is not None:
            self._config.progress(min(done_ms, total_ms), total_ms)

    async def _run(
        self,
        bounds: SessionBounds,
        session_key: int,
        driver_number: int,
        *,
        with_car_data: bool,
    ) -> DualStreamResult:
        config = self._config
        cursor = bounds.start_ms
        window_ms = config.initial_window_ms
        floor_rejections = 0
        location: SampleAccumulator[LocationSample] = SampleAccumulator()
        car_data: SampleAccumulator[CarDataSample] = SampleAccumulator()
        result = DualStreamResult()

        while cursor < bounds.end_ms:
            window = Window(cursor, min(cursor + window_ms, bounds.end_ms))
            location_outcome, car_outcome = await self._fetch_pair(
                session_key, driver_number, window, with_car_data=with_car_data
            )

            if location_outcome.kind is OutcomeKind.TOO_LARGE:
                if window_ms <= config.min_window_ms:
                    floor_rejections += 1
                    if floor_rejections > config.max_floor_rejections:
                        raise WindowFloorExceededError(
                            f"Driver #{driver_number}: window {window} still too large at "
                            f"{config.min_window_ms}ms after {floor_rejections} attempts",
                            start_ms=window.start_ms,
                            end_ms=window.end_ms,
                            rejections=floor_rejections,
                        )
                window_ms = max(config.min_window_ms, window_ms // 2)
                _logger.warning(
                    "Too much data for driver #%s at %s, reducing window to %dms and retrying",
                    driver_number,
                    window,
                    window_ms,
                )
                continue

            if not location_outcome.is_ok:
                assert location_outcome.error is not None  # noqa: S101
                _logger.error("Driver #%s window %s failed: %s", driver_number, window, location_outcome.error)
                raise location_outcome.error

            floor_rejections = 0
            added = location.merge(location_outcome.samples)
            if car_outcome is not None:
                if car_outcome.is_ok:
                    car_data.merge(car_outcome.samples)
                else:
                    result.failed_windows.append(window)
                    _logger.warning(
                        "Car data for driver #%s window %s skipped (%s): %s",
                        driver_number,
                        window,
                        car_outcome.kind.name,
                        car_outcome.error or car_outcome.reason,
                    )
            _logger.debug("Driver #%s window %s: %d new location samples", driver_number, window, added)

            result.windows.append(window)
            self._report(window.end_ms - bounds.start_ms, bounds.total_ms)
            cursor = window.end_ms

            if config.delay_between_requests_ms > 0:
                await asyncio.sleep(config.delay_between_requests_ms / 1000)

        result.location = location.sorted()
        result.car_data = car_data.sorted()
        _logger.info(
            "Driver #%s: %d location samples, %d car data samples over %d windows",
            driver_number,
            len(result.location),
            len(result.car_data),
            len(result.windows),
        )
        return result
