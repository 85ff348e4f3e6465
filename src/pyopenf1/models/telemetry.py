"""Telemetry sample models.

Only the identity fields (``driver_number``, ``date``) matter to the
fetcher: they order and deduplicate samples.  Everything else passes
through untouched in ``raw``.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import field_validator

from pyopenf1.models._base import OpenF1BaseModel, parse_iso_timestamp, to_epoch_ms

DedupKey = tuple[str, str]


class TelemetrySample(OpenF1BaseModel):
    """A timestamped sample for one driver."""

    driver_number: int | str
    date: datetime
    session_key: int | None = None
    meeting_key: int | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: object) -> object:
        if isinstance(value, str):
            return parse_iso_timestamp(value)
        return value

    @property
    def dedup_key(self) -> DedupKey:
        """``(driver_number, date)`` identity, using the API's date text."""
        date_text = self.raw.get("date")
        if not isinstance(date_text, str):
            date_text = self.date.isoformat()
        return str(self.driver_number), date_text

    @property
    def timestamp_ms(self) -> int:
        return to_epoch_ms(self.date)


class LocationSample(TelemetrySample):
    """Car position on track (``location`` resource, ~3.7 Hz)."""

    x: float | None = None
    y: float | None = None
    z: float | None = None


class CarDataSample(TelemetrySample):
    """Car state (``car_data`` resource, ~3.7 Hz)."""

    speed: float | None = None
    rpm: float | None = None
    n_gear: int | None = None
    throttle: float | None = None
    brake: float | None = None
    drs: int | None = None
