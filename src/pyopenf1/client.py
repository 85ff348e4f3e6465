"""High-level async client for the OpenF1 API."""

from __future__ import annotations

import enum
import logging
from typing import Any

import aiohttp

from pyopenf1._api.outcome import WindowOutcome, classify_body, classify_error, rejection_detail
from pyopenf1._api.query import Operator, build_query
from pyopenf1._constants import CAR_DATA as CAR_DATA_ENDPOINT
from pyopenf1._constants import DATE_FIELD, DRIVER_NUMBER, DRIVERS, SESSION_KEY, SESSIONS
from pyopenf1._constants import LOCATION as LOCATION_ENDPOINT
from pyopenf1._retry import RetryPolicy, with_retry
from pyopenf1._transport import HttpTransport, Transport
from pyopenf1.config import OpenF1Config
from pyopenf1.exceptions import OpenF1ApiError, OpenF1Error
from pyopenf1.models._base import ms_to_iso
from pyopenf1.models.driver import DriverInfo
from pyopenf1.models.session import SessionInfo
from pyopenf1.models.telemetry import CarDataSample, LocationSample, TelemetrySample

_logger = logging.getLogger(__name__)


class Stream(enum.Enum):
    """Windowed telemetry resources."""

    LOCATION = (LOCATION_ENDPOINT, LocationSample)
    CAR_DATA = (CAR_DATA_ENDPOINT, CarDataSample)

    @property
    def endpoint(self) -> str:
        return self.value[0]

    @property
    def model(self) -> type[TelemetrySample]:
        return self.value[1]


def _window_ranges(date_from: str, date_to: str) -> list[tuple[str, Operator, object]]:
    return [(DATE_FIELD, Operator.GTE, date_from), (DATE_FIELD, Operator.LT, date_to)]


class OpenF1Client:
    """Async client for the OpenF1 API.

    Usage::

        async with OpenF1Client(config) as client:
            sessions = await client.get_sessions(2023)

    Every query goes through the retry engine with ``config.retry``.  A
    transport can be injected directly, which is how tests drive the client
    without a network.
    """

    def __init__(
        self,
        config: OpenF1Config | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config or OpenF1Config()
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport

    @property
    def config(self) -> OpenF1Config:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> OpenF1Client:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise OpenF1Error("Client not initialized. Use 'async with OpenF1Client(...) as client:'")
        return self._transport

    async def _get(self, endpoint: str, query: str, *, retry: RetryPolicy | None = None) -> Any:
        transport = self._require_transport()
        return await with_retry(lambda: transport.get_json(endpoint, query), retry or self._config.retry)

    async def _get_list(self, endpoint: str, query: str) -> list[dict[str, Any]]:
        """GET a collection, raising if the API answered with a rejection."""
        body = await self._get(endpoint, query)
        if isinstance(body, list):
            return body
        detail = rejection_detail(body)
        if detail is not None and "no results" in detail.lower():
            return []
        raise OpenF1ApiError(
            f"{endpoint} returned {type(body).__name__} instead of a list: {str(body)[:200]}",
            detail=detail or "",
            endpoint=endpoint,
        )

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_session(self, session_key: int) -> list[SessionInfo]:
        """Fetch a single session by key (the API answers with a list)."""
        items = await self._get_list(SESSIONS, build_query({SESSION_KEY: session_key}))
        return [SessionInfo.model_validate(item) for item in items]

    async def get_sessions(self, year: int, session_type: str = "Race") -> list[SessionInfo]:
        """Fetch all sessions of *session_type* held in *year*."""
        items = await self._get_list(SESSIONS, build_query({"session_type": session_type, "year": year}))
        return [SessionInfo.model_validate(item) for item in items]

    async def get_drivers(self, session_key: int) -> list[DriverInfo]:
        """Fetch the driver roster of a session."""
        return await self.get_driver_details(session_key)

    async def get_driver_details(self, session_key: int, driver_number: int | None = None) -> list[DriverInfo]:
        """Fetch detailed driver entries (team colour, headshot, ...)."""
        query = build_query({SESSION_KEY: session_key, DRIVER_NUMBER: driver_number})
        items = await self._get_list(DRIVERS, query)
        return [DriverInfo.model_validate(item) for item in items]

    # ------------------------------------------------------------------
    # Telemetry (raw bodies)
    # ------------------------------------------------------------------

    async def get_location(self, session_key: int, driver_number: int | None = None) -> Any:
        """Fetch unwindowed location data; the body is returned as-is."""
        query = build_query({SESSION_KEY: session_key, DRIVER_NUMBER: driver_number})
        return await self._get(LOCATION_ENDPOINT, query)

    async def get_location_for_session(self, session_key: int) -> Any:
        """Fetch location data of every driver in one request."""
        return await self.get_location(session_key)

    async def get_car_data(self, session_key: int, driver_number: int) -> Any:
        query = build_query({SESSION_KEY: session_key, DRIVER_NUMBER: driver_number})
        return await self._get(CAR_DATA_ENDPOINT, query)

    async def get_location_window(self, session_key: int, driver_number: int, date_from: str, date_to: str) -> Any:
        """Fetch location samples with ``date_from <= date < date_to``."""
        query = build_query(
            {SESSION_KEY: session_key, DRIVER_NUMBER: driver_number},
            _window_ranges(date_from, date_to),
        )
        return await self._get(LOCATION_ENDPOINT, query)

    async def get_car_data_window(self, session_key: int, driver_number: int, date_from: str, date_to: str) -> Any:
        """Fetch car-state samples with ``date_from <= date < date_to``."""
        query = build_query(
            {SESSION_KEY: session_key, DRIVER_NUMBER: driver_number},
            _window_ranges(date_from, date_to),
        )
        return await self._get(CAR_DATA_ENDPOINT, query)

    # ------------------------------------------------------------------
    # Windowed fetch with classification
    # ------------------------------------------------------------------

    async def fetch_window(
        self,
        stream: Stream,
        session_key: int,
        driver_number: int,
        start_ms: int,
        end_ms: int,
        *,
        retry: RetryPolicy,
    ) -> WindowOutcome[Any]:
        """Fetch one ``[start_ms, end_ms)`` window and classify the result.

        The request is retried at two levels: ``config.retry`` around the
        HTTP call and *retry* around the whole window request.  This method
        never raises for request failures; they come back as ``RETRYABLE``
        or ``FATAL`` outcomes.
        """
        date_from = ms_to_iso(start_ms)
        date_to = ms_to_iso(end_ms)
        fetch = self.get_location_window if stream is Stream.LOCATION else self.get_car_data_window

        try:
            body = await with_retry(lambda: fetch(session_key, driver_number, date_from, date_to), retry)
        except Exception as exc:
            outcome = classify_error(exc)
            _logger.debug("%s window %s -> %s failed: %s", stream.name, date_from, date_to, outcome.kind.name)
            return outcome
        return classify_body(body, stream.model)
