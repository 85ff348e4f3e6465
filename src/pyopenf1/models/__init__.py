"""Typed models for OpenF1 API responses."""

from pyopenf1.models.driver import DriverInfo
from pyopenf1.models.session import SessionBounds, SessionInfo
from pyopenf1.models.telemetry import CarDataSample, LocationSample, TelemetrySample

__all__ = [
    "CarDataSample",
    "DriverInfo",
    "LocationSample",
    "SessionBounds",
    "SessionInfo",
    "TelemetrySample",
]
