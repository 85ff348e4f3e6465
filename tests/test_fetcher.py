from __future__ import annotations

from collections.abc import Callable
from typing import Any
from urllib.parse import unquote

import pytest

from pyopenf1._retry import RetryPolicy
from pyopenf1.client import OpenF1Client
from pyopenf1.config import FetcherConfig, OpenF1Config
from pyopenf1.exceptions import InvalidSessionBoundsError, OpenF1ServerError, WindowFloorExceededError
from pyopenf1.fetcher import SampleAccumulator, Window, WindowFetcher
from pyopenf1.models._base import ms_to_iso, parse_iso_timestamp, to_epoch_ms
from pyopenf1.models.session import SessionBounds, SessionInfo
from pyopenf1.models.telemetry import LocationSample

START = 1_700_000_000_000
SESSION_KEY = 9161
DRIVER = 44

Handler = Callable[[str, int, int], Any]


def _parse_window(query: str) -> tuple[int, int]:
    start = end = None
    for part in query.split("&"):
        decoded = unquote(part)
        if decoded.startswith("date>="):
            start = to_epoch_ms(parse_iso_timestamp(decoded[len("date>=") :]))
        elif decoded.startswith("date<"):
            end = to_epoch_ms(parse_iso_timestamp(decoded[len("date<") :]))
    assert start is not None and end is not None
    return start - START, end - START


class _WindowTransport:
    """Answers windowed queries through *handler(endpoint, start, end)*.

    ``start``/``end`` are relative to ``START`` so tests read in session
    milliseconds.
    """

    def __init__(self, handler: Handler) -> None:
        self._handler = handler
        self.calls: list[tuple[str, int, int]] = []

    async def get_json(self, endpoint: str, query: str) -> Any:
        start, end = _parse_window(query)
        self.calls.append((endpoint, start, end))
        return self._handler(endpoint, start, end)

    def windows(self, endpoint: str = "/location") -> list[tuple[int, int]]:
        return [(start, end) for ep, start, end in self.calls if ep == endpoint]


def _sample(offset_ms: int, *, driver: int = DRIVER, **extra: Any) -> dict[str, Any]:
    return {
        "date": ms_to_iso(START + offset_ms),
        "driver_number": driver,
        "session_key": SESSION_KEY,
        "meeting_key": 1219,
        **extra,
    }


def _ticks(start: int, end: int, step: int = 500) -> list[dict[str, Any]]:
    first = -(-start // step) * step
    return [_sample(t, x=t, y=-t, z=0) for t in range(first, end, step)]


def _client(transport: _WindowTransport) -> OpenF1Client:
    config = OpenF1Config(retry=RetryPolicy(max_retries=0, base_delay=0.0, jitter=False))
    return OpenF1Client(config, transport=transport)


def _fetcher(transport: _WindowTransport, **overrides: Any) -> WindowFetcher:
    options: dict[str, Any] = {
        "initial_window_ms": 5000,
        "min_window_ms": 250,
        "max_retries_per_window": 0,
        "delay_between_requests_ms": 0,
        "window_base_delay": 0.0,
    }
    options.update(overrides)
    return WindowFetcher(_client(transport), FetcherConfig(**options))


def _bounds(span_ms: int = 10_000) -> SessionBounds:
    return SessionBounds(START, START + span_ms)


@pytest.mark.asyncio
async def test_clean_run_uses_two_windows_and_reports_progress() -> None:
    transport = _WindowTransport(lambda _ep, start, end: _ticks(start, end))
    progress: list[tuple[int, int]] = []
    fetcher = _fetcher(transport, progress=lambda done, total: progress.append((done, total)))

    samples = await fetcher.fetch_driver_chunked(_bounds(), SESSION_KEY, DRIVER)

    assert transport.windows() == [(0, 5000), (5000, 10_000)]
    assert progress == [(5000, 10_000), (10_000, 10_000)]
    assert [s.timestamp_ms - START for s in samples] == list(range(0, 10_000, 500))
    assert all(isinstance(s, LocationSample) for s in samples)
    assert samples[1].x == 500


@pytest.mark.asyncio
async def test_single_rejection_halves_window_and_reissues_same_span() -> None:
    rejected: list[tuple[int, int]] = []

    def handler(_ep: str, start: int, end: int) -> Any:
        if end - start > 2500 and not rejected:
            rejected.append((start, end))
            return {"detail": "Too much data. Please narrow your query."}
        return _ticks(start, end)

    transport = _WindowTransport(handler)
    progress: list[int] = []
    fetcher = _fetcher(transport, progress=lambda done, _total: progress.append(done))

    samples = await fetcher.fetch_driver_chunked(_bounds(), SESSION_KEY, DRIVER)

    assert rejected == [(0, 5000)]
    assert transport.windows() == [(0, 5000), (0, 2500), (2500, 5000), (5000, 7500), (7500, 10_000)]
    assert progress == [2500, 5000, 7500, 10_000]
    assert len(samples) == 20


@pytest.mark.asyncio
async def test_rejection_in_error_message_also_shrinks() -> None:
    failed = False

    def handler(_ep: str, start: int, end: int) -> Any:
        nonlocal failed
        if not failed:
            failed = True
            raise RuntimeError("upstream said: Too much data for this range")
        return _ticks(start, end)

    transport = _WindowTransport(handler)
    fetcher = _fetcher(transport)

    await fetcher.fetch_driver_chunked(_bounds(), SESSION_KEY, DRIVER)

    assert transport.windows()[:2] == [(0, 5000), (0, 2500)]


@pytest.mark.asyncio
async def test_cursor_progression_is_gapless_and_window_never_grows() -> None:
    # Reject anything over 1200ms; span is not a multiple of the final size.
    def handler(_ep: str, start: int, end: int) -> Any:
        if end - start > 1200:
            return {"detail": "too much data"}
        return _ticks(start, end, step=100)

    transport = _WindowTransport(handler)
    fetcher = _fetcher(transport, initial_window_ms=8000, min_window_ms=100)

    samples = await fetcher.fetch_driver_chunked(_bounds(10_300), SESSION_KEY, DRIVER)

    requested = transport.windows()
    sizes = [end - start for start, end in requested]
    # Window size only shrinks (the tail window may be clamped shorter).
    assert all(a >= b for a, b in zip(sizes[:-1], sizes[1:], strict=True))

    accepted = [(start, end) for start, end in requested if end - start <= 1200]
    assert accepted[0][0] == 0
    assert accepted[-1][1] == 10_300
    assert all(prev[1] == nxt[0] for prev, nxt in zip(accepted[:-1], accepted[1:], strict=True))
    assert len(samples) == 103


@pytest.mark.asyncio
async def test_overlapping_windows_are_deduplicated_and_sorted() -> None:
    def handler(_ep: str, start: int, end: int) -> Any:
        # Overlap into the previous window and answer newest-first.
        items = _ticks(max(0, start - 1000), end)
        return list(reversed(items))

    transport = _WindowTransport(handler)
    fetcher = _fetcher(transport, initial_window_ms=2000)

    samples = await fetcher.fetch_driver_chunked(_bounds(), SESSION_KEY, DRIVER)

    dates = [s.date for s in samples]
    assert dates == sorted(dates)
    assert len({s.dedup_key for s in samples}) == len(samples) == 20


@pytest.mark.asyncio
async def test_non_list_body_is_an_empty_window() -> None:
    transport = _WindowTransport(lambda _ep, _s, _e: {"detail": "No results found."})
    fetcher = _fetcher(transport)

    samples = await fetcher.fetch_driver_chunked(_bounds(), SESSION_KEY, DRIVER)

    assert samples == []
    assert transport.windows() == [(0, 5000), (5000, 10_000)]


@pytest.mark.asyncio
async def test_persistent_floor_rejection_raises_after_cap() -> None:
    transport = _WindowTransport(lambda _ep, _s, _e: {"detail": "Too much data"})
    fetcher = _fetcher(transport, initial_window_ms=1000, min_window_ms=1000, max_floor_rejections=2)

    with pytest.raises(WindowFloorExceededError) as exc_info:
        await fetcher.fetch_driver_chunked(_bounds(), SESSION_KEY, DRIVER)

    assert exc_info.value.rejections == 3
    assert transport.windows() == [(0, 1000)] * 3


@pytest.mark.asyncio
async def test_floor_counter_resets_after_accepted_window() -> None:
    calls = 0

    def handler(_ep: str, start: int, end: int) -> Any:
        nonlocal calls
        calls += 1
        # Every other request is rejected.
        if calls % 2:
            return {"detail": "Too much data"}
        return _ticks(start, end)

    transport = _WindowTransport(handler)
    fetcher = _fetcher(transport, initial_window_ms=2500, min_window_ms=2500, max_floor_rejections=1)

    samples = await fetcher.fetch_driver_chunked(_bounds(), SESSION_KEY, DRIVER)

    assert len(samples) == 20
    assert len(transport.windows()) == 8


@pytest.mark.asyncio
async def test_transport_failure_propagates_after_both_retry_layers() -> None:
    def handler(_ep: str, _s: int, _e: int) -> Any:
        raise OpenF1ServerError("HTTP 503 from /location", status_code=503, endpoint="/location")

    transport = _WindowTransport(handler)
    config = OpenF1Config(retry=RetryPolicy(max_retries=1, base_delay=0.0, jitter=False))
    fetcher = WindowFetcher(
        OpenF1Client(config, transport=transport),
        FetcherConfig(max_retries_per_window=1, delay_between_requests_ms=0, window_base_delay=0.0),
    )

    with pytest.raises(OpenF1ServerError):
        await fetcher.fetch_driver_chunked(_bounds(), SESSION_KEY, DRIVER)

    assert len(transport.calls) == 4


@pytest.mark.asyncio
async def test_dual_stream_car_data_failure_is_skipped() -> None:
    def handler(endpoint: str, start: int, end: int) -> Any:
        if endpoint == "/car_data" and start == 2500:
            raise OpenF1ServerError("HTTP 502 from /car_data", status_code=502, endpoint=endpoint)
        return _ticks(start, end)

    transport = _WindowTransport(handler)
    fetcher = _fetcher(transport, initial_window_ms=2500)

    result = await fetcher.fetch_driver_dual(_bounds(), SESSION_KEY, DRIVER)

    assert [w.start_ms - START for w in result.windows] == [0, 2500, 5000, 7500]
    assert len(result.location) == 20
    car_offsets = [s.timestamp_ms - START for s in result.car_data]
    assert car_offsets == [t for t in range(0, 10_000, 500) if not 2500 <= t < 5000]
    assert result.failed_windows == [Window(START + 2500, START + 5000)]


@pytest.mark.asyncio
async def test_dual_stream_location_rejection_gates_both_streams() -> None:
    rejected = False

    def handler(endpoint: str, start: int, end: int) -> Any:
        nonlocal rejected
        if endpoint == "/location" and end - start > 2500 and not rejected:
            rejected = True
            return {"detail": "Too much data"}
        return _ticks(start, end)

    transport = _WindowTransport(handler)
    fetcher = _fetcher(transport)

    result = await fetcher.fetch_driver_dual(_bounds(), SESSION_KEY, DRIVER)

    assert transport.windows("/car_data") == transport.windows("/location")
    assert transport.windows("/location")[:2] == [(0, 5000), (0, 2500)]
    assert len(result.car_data) == len(result.location) == 20
    assert result.failed_windows == []


@pytest.mark.asyncio
async def test_invalid_session_dates_fail_before_any_request() -> None:
    transport = _WindowTransport(lambda _ep, start, end: _ticks(start, end))
    fetcher = _fetcher(transport)
    session = SessionInfo.model_validate(
        {
            "session_key": SESSION_KEY,
            "location": "Monza",
            "date_start": "2023-09-03T15:00:00+00:00",
            "date_end": "2023-09-03T13:00:00+00:00",
        }
    )

    with pytest.raises(InvalidSessionBoundsError):
        await fetcher.fetch_session_driver(session, DRIVER)

    assert transport.calls == []


def test_accumulator_keeps_first_sample_per_key() -> None:
    acc: SampleAccumulator[LocationSample] = SampleAccumulator()
    first = LocationSample.model_validate(_sample(0, x=1))
    duplicate = LocationSample.model_validate(_sample(0, x=2))
    other_driver = LocationSample.model_validate(_sample(0, driver=1, x=3))

    assert acc.merge([first, duplicate, other_driver]) == 2
    assert [s.x for s in acc.sorted()] == [1, 3]
