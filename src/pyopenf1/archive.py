"""Race archiving: roster lookup, per-driver fetch and saved race files.

Race lists and driver rosters are cached in a metadata :class:`FileCache`;
finished race data goes to a separate data cache in the format the replay
viewer loads::

    {
      "sessionInfo": {...},
      "locationData": {"44": [...], "1": [...]},
      "carData": {"44": [...]},          # only when requested
      "savedAt": "2024-03-02T17:12:09.120Z"
    }
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pyopenf1.cache import FileCache
from pyopenf1.client import OpenF1Client
from pyopenf1.exceptions import OpenF1Error, SessionNotFoundError
from pyopenf1.fetcher import WindowFetcher
from pyopenf1.models.session import SessionBounds, SessionInfo
from pyopenf1.models.telemetry import CarDataSample

_logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


@dataclasses.dataclass
class SavedRaceData:
    """One session's telemetry, keyed by driver number (as string)."""

    session_info: SessionInfo
    location_data: dict[str, list[dict[str, Any]]] = dataclasses.field(default_factory=dict)
    car_data: dict[str, list[dict[str, Any]]] | None = None
    saved_at: datetime = dataclasses.field(default_factory=lambda: datetime.now(UTC))
    loaded: int = 0
    failed: int = 0

    @property
    def key(self) -> str:
        location = _WHITESPACE.sub("_", self.session_info.location)
        return f"f1_race_{location}_{self.session_info.session_key}"

    def to_json(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "sessionInfo": self.session_info.raw or self.session_info.model_dump(exclude={"raw"}),
            "locationData": self.location_data,
        }
        if self.car_data is not None:
            record["carData"] = self.car_data
        record["savedAt"] = self.saved_at.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return record

    @classmethod
    def from_json(cls, record: dict[str, Any]) -> SavedRaceData:
        saved_at = record.get("savedAt")
        location_data = record.get("locationData") or {}
        return cls(
            session_info=SessionInfo.model_validate(record["sessionInfo"]),
            location_data=location_data,
            car_data=record.get("carData"),
            saved_at=datetime.fromisoformat(saved_at) if isinstance(saved_at, str) else datetime.now(UTC),
            loaded=len(location_data),
        )


class RaceArchiver:
    """Fetches whole sessions driver by driver and persists them."""

    def __init__(
        self,
        client: OpenF1Client,
        fetcher: WindowFetcher,
        data_cache: FileCache,
        meta_cache: FileCache,
        *,
        delay_between_drivers: float = 1.0,
    ) -> None:
        self._client = client
        self._fetcher = fetcher
        self._data_cache = data_cache
        self._meta_cache = meta_cache
        self._delay_between_drivers = delay_between_drivers

    @property
    def data_cache(self) -> FileCache:
        return self._data_cache

    @property
    def meta_cache(self) -> FileCache:
        return self._meta_cache

    async def list_races(self, year: int, use_cache: bool = True) -> list[SessionInfo]:
        """Race sessions of *year*, from the metadata cache when possible."""
        key = f"races_{year}"
        if use_cache:
            cached = self._meta_cache.read(key)
            if isinstance(cached, list) and cached:
                _logger.info("Loaded %d races for %s from cache", len(cached), year)
                return [SessionInfo.model_validate(item) for item in cached]

        sessions = await self._client.get_sessions(year)
        self._meta_cache.write(key, [session.raw for session in sessions])
        _logger.info("Fetched %d races for %s", len(sessions), year)
        return sessions

    async def get_drivers(self, session_key: int, use_cache: bool = True) -> list[int]:
        """Sorted driver numbers taking part in *session_key*."""
        key = f"drivers_{session_key}"
        if use_cache:
            cached = self._meta_cache.read(key)
            if isinstance(cached, list) and cached:
                _logger.info("Loaded %d drivers for session %s from cache", len(cached), session_key)
                return [int(number) for number in cached]

        drivers = await self._client.get_drivers(session_key)
        numbers = sorted({driver.driver_number for driver in drivers})
        self._meta_cache.write(key, numbers)
        _logger.info("Fetched %d drivers for session %s", len(numbers), session_key)
        return numbers

    async def get_session(self, session_key: int) -> SessionInfo:
        sessions = await self._client.get_session(session_key)
        if not sessions:
            raise SessionNotFoundError(f"No session found for session_key={session_key}")
        return sessions[0]

    async def fetch_race_data(
        self,
        session_key: int,
        driver_numbers: list[int] | None = None,
        use_cache: bool = True,
        *,
        with_car_data: bool = False,
    ) -> SavedRaceData:
        """Fetch every requested driver of a session.

        Session lookup and bounds errors are fatal.  Per-driver failures are
        logged and counted in ``failed``; drivers without data are counted
        as failed too.
        """
        session = await self.get_session(session_key)
        bounds = SessionBounds.from_session(session)
        _logger.info("Session %s: %s - %s", session_key, session.location, session.session_name)

        if not driver_numbers:
            driver_numbers = await self.get_drivers(session_key, use_cache)

        data = SavedRaceData(session_info=session, car_data={} if with_car_data else None)
        for index, driver_number in enumerate(driver_numbers):
            if index > 0 and self._delay_between_drivers > 0:
                await asyncio.sleep(self._delay_between_drivers)
            _logger.info("[%d/%d] Driver #%s", index + 1, len(driver_numbers), driver_number)
            car_samples: list[CarDataSample] = []
            try:
                if with_car_data:
                    result = await self._fetcher.fetch_driver_dual(bounds, session_key, driver_number)
                    location, car_samples = result.location, result.car_data
                else:
                    location = await self._fetcher.fetch_driver_chunked(bounds, session_key, driver_number)
            except OpenF1Error as exc:
                data.failed += 1
                _logger.error("Driver #%s failed: %s", driver_number, exc)
                continue

            if not location:
                data.failed += 1
                _logger.warning("Driver #%s: no data available", driver_number)
                continue

            data.location_data[str(driver_number)] = [sample.raw for sample in location]
            if data.car_data is not None:
                data.car_data[str(driver_number)] = [sample.raw for sample in car_samples]
            data.loaded += 1

        _logger.info("Summary: %d drivers loaded, %d failed", data.loaded, data.failed)
        return data

    def save(self, data: SavedRaceData) -> Path:
        """Write *data* to the data cache and return the file path."""
        path = self._data_cache.write(data.key, data.to_json())
        _logger.info("Saved %s", path)
        return path

    def load(self, key: str) -> SavedRaceData | None:
        record = self._data_cache.read(key)
        if not isinstance(record, dict) or "sessionInfo" not in record:
            return None
        return SavedRaceData.from_json(record)

    def list_saved(self) -> list[str]:
        return self._data_cache.list()
