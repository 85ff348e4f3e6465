"""pyopenf1 - Async OpenF1 telemetry fetcher with adaptive time windows."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyopenf1")
except PackageNotFoundError:
    __version__ = "0+local"
from pyopenf1._api.outcome import OutcomeKind, WindowOutcome
from pyopenf1._retry import RetryPolicy, with_retry
from pyopenf1.archive import RaceArchiver, SavedRaceData
from pyopenf1.cache import CacheStat, FileCache
from pyopenf1.client import OpenF1Client, Stream
from pyopenf1.config import FetcherConfig, OpenF1Config
from pyopenf1.exceptions import (
    InvalidSessionBoundsError,
    OpenF1ApiError,
    OpenF1ConfigError,
    OpenF1Error,
    OpenF1RateLimitError,
    OpenF1ServerError,
    OpenF1TransportError,
    SessionNotFoundError,
    WindowFloorExceededError,
)
from pyopenf1.fetcher import DualStreamResult, Window, WindowFetcher
from pyopenf1.models import (
    CarDataSample,
    DriverInfo,
    LocationSample,
    SessionBounds,
    SessionInfo,
    TelemetrySample,
)

__all__ = [
    "__version__",
    "CacheStat",
    "CarDataSample",
    "DriverInfo",
    "DualStreamResult",
    "FetcherConfig",
    "FileCache",
    "InvalidSessionBoundsError",
    "LocationSample",
    "OpenF1ApiError",
    "OpenF1Client",
    "OpenF1Config",
    "OpenF1ConfigError",
    "OpenF1Error",
    "OpenF1RateLimitError",
    "OpenF1ServerError",
    "OpenF1TransportError",
    "OutcomeKind",
    "RaceArchiver",
    "RetryPolicy",
    "SavedRaceData",
    "SessionBounds",
    "SessionInfo",
    "SessionNotFoundError",
    "Stream",
    "TelemetrySample",
    "Window",
    "WindowFetcher",
    "WindowFloorExceededError",
    "WindowOutcome",
    "with_retry",
]
