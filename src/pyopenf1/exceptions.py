"""Custom exception hierarchy for pyopenf1."""

from __future__ import annotations


class OpenF1Error(Exception):
    """Base exception for all pyopenf1 errors."""


class OpenF1ConfigError(OpenF1Error):
    """Invalid or missing configuration."""


class InvalidSessionBoundsError(OpenF1Error, ValueError):
    """Session start/end are unparsable or the end is not after the start."""


class SessionNotFoundError(OpenF1Error):
    """The API returned no session for the requested ``session_key``."""


class OpenF1TransportError(OpenF1Error):
    """HTTP-level failure (connection error, timeout, 5xx, 429).

    Every transport error is considered transient and may be retried.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class OpenF1ServerError(OpenF1TransportError):
    """Server returned a 5xx status."""


class OpenF1RateLimitError(OpenF1TransportError):
    """Server returned 429 Too Many Requests.

    ``retry_after`` carries the ``Retry-After`` hint in seconds when the
    server sent one.  The retry engine waits exactly that long instead of
    its computed backoff.
    """

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        status_code: int | None = 429,
        endpoint: str = "",
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, status_code=status_code, endpoint=endpoint)


class OpenF1ApiError(OpenF1Error):
    """API answered with a structured rejection where data was expected."""

    def __init__(
        self,
        message: str,
        *,
        detail: str = "",
        endpoint: str = "",
    ) -> None:
        self.detail = detail
        self.endpoint = endpoint
        super().__init__(message)


class WindowFloorExceededError(OpenF1Error):
    """The API kept rejecting a window already shrunk to the minimum size.

    Raised by :class:`~pyopenf1.fetcher.WindowFetcher` once the rejection
    budget at the floor (``FetcherConfig.max_floor_rejections``) is spent.
    """

    def __init__(self, message: str, *, start_ms: int, end_ms: int, rejections: int) -> None:
        self.start_ms = start_ms
        self.end_ms = end_ms
        self.rejections = rejections
        super().__init__(message)
