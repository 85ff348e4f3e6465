"""Base model and timestamp helpers shared by OpenF1 response models.

Every OpenF1 response model inherits from :class:`OpenF1BaseModel` which
provides:

* frozen, ``extra="ignore"`` parsing so new API fields never break us;
* a ``raw`` dict that captures the original payload, which is what gets
  persisted and replayed.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def parse_iso_timestamp(value: str) -> datetime:
    """Parse an OpenF1 ISO-8601 string into an aware UTC datetime.

    Naive values are assumed to be UTC.

    Raises
    ------
    ValueError
        If *value* is not ISO-8601.
    """
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def to_epoch_ms(value: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    return int(round(value.timestamp() * 1000))


def ms_to_iso(epoch_ms: int) -> str:
    """Render epoch milliseconds the way the API expects in range filters.

    ``1694869415200`` -> ``"2023-09-16T13:03:35.200Z"``
    """
    seconds, millis = divmod(epoch_ms, 1000)
    dt = datetime.fromtimestamp(seconds, tz=UTC) + timedelta(milliseconds=millis)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class OpenF1BaseModel(BaseModel):
    """Base for OpenF1 response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original API response dict."""

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        # Keep the caller's raw when constructing with kwargs that include it.
        if "raw" in values:
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        cleaned["raw"] = dict(values)
        return cleaned
