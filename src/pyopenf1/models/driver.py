"""Driver roster model."""

from __future__ import annotations

from pyopenf1.models._base import OpenF1BaseModel


class DriverInfo(OpenF1BaseModel):
    """One entry of the ``drivers`` resource."""

    driver_number: int
    session_key: int | None = None
    meeting_key: int | None = None
    broadcast_name: str | None = None
    full_name: str | None = None
    name_acronym: str | None = None
    team_name: str | None = None
    team_colour: str | None = None
    headshot_url: str | None = None
    country_code: str | None = None
