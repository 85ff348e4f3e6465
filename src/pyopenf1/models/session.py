"""Session metadata and session time bounds."""

from __future__ import annotations

import dataclasses
from datetime import datetime

from pydantic import field_validator

from pyopenf1.exceptions import InvalidSessionBoundsError
from pyopenf1.models._base import OpenF1BaseModel, parse_iso_timestamp, to_epoch_ms


class SessionInfo(OpenF1BaseModel):
    """One entry of the ``sessions`` resource.

    ``date_start``/``date_end`` are kept as the API's ISO strings; use
    :meth:`SessionBounds.from_session` to get a validated interval.
    """

    session_key: int
    meeting_key: int | None = None
    session_name: str = ""
    session_type: str = ""
    location: str = ""
    date_start: str | None = None
    date_end: str | None = None
    year: int | None = None
    circuit_key: int | None = None
    circuit_short_name: str | None = None
    country_code: str | None = None
    country_key: int | None = None
    country_name: str | None = None
    gmt_offset: str | None = None

    @field_validator("date_start", "date_end", mode="before")
    @classmethod
    def _coerce_date(cls, value: object) -> object:
        if isinstance(value, datetime):
            return value.isoformat()
        return value


@dataclasses.dataclass(frozen=True)
class SessionBounds:
    """Half-open interval ``[start_ms, end_ms)`` in epoch milliseconds."""

    start_ms: int
    end_ms: int

    def __post_init__(self) -> None:
        if self.end_ms <= self.start_ms:
            raise InvalidSessionBoundsError(
                f"Session end ({self.end_ms}) must be after start ({self.start_ms})"
            )

    @property
    def total_ms(self) -> int:
        return self.end_ms - self.start_ms

    @classmethod
    def from_iso(cls, date_start: str | None, date_end: str | None) -> SessionBounds:
        """Build bounds from two ISO-8601 strings.

        Raises
        ------
        InvalidSessionBoundsError
            If either string is missing or unparsable or the end is not after the start.
        """
        try:
            start = parse_iso_timestamp(date_start)
            end = parse_iso_timestamp(date_end)
        except (TypeError, ValueError, AttributeError) as exc:
            raise InvalidSessionBoundsError(
                f"Invalid session start/end dates: {date_start!r} -> {date_end!r}"
            ) from exc
        return cls(start_ms=to_epoch_ms(start), end_ms=to_epoch_ms(end))

    @classmethod
    def from_session(cls, session: SessionInfo) -> SessionBounds:
        return cls.from_iso(session.date_start, session.date_end)
