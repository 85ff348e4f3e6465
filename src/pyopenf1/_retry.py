"""Retry-with-backoff wrapper for fallible async operations.

Transport failures (connection errors, 5xx, 429) are retried; anything
else propagates on the first occurrence.  Application-level rejections
such as "too much data" are not this module's concern: the caller owns
that classification because only the caller can change the request.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pyopenf1.exceptions import OpenF1ConfigError, OpenF1RateLimitError, OpenF1TransportError

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclasses.dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters for one :func:`with_retry` call.

    Parameters
    ----------
    max_retries : int
        Retries after the first attempt.  ``0`` disables retrying.
    base_delay : float
        Delay in seconds before the first retry.
    backoff_factor : float
        Multiplier applied per attempt (``base_delay * factor ** attempt``).
    jitter : bool
        Randomize each delay by a factor in ``[0.5, 1.5)``.
    """

    max_retries: int = 4
    base_delay: float = 0.5
    backoff_factor: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise OpenF1ConfigError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0:
            raise OpenF1ConfigError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.backoff_factor < 1:
            raise OpenF1ConfigError(f"backoff_factor must be >= 1, got {self.backoff_factor}")

    def with_retries(self, max_retries: int) -> RetryPolicy:
        """Return a copy with a different retry budget."""
        return dataclasses.replace(self, max_retries=max_retries)


def is_retryable(exc: BaseException) -> bool:
    """Return ``True`` for errors worth another attempt."""
    return isinstance(exc, OpenF1TransportError)


def compute_delay(policy: RetryPolicy, attempt: int, exc: BaseException | None = None) -> float:
    """Seconds to wait after failed *attempt* (0-based).

    A rate-limit error carrying a ``Retry-After`` hint wins over the
    computed backoff.
    """
    if isinstance(exc, OpenF1RateLimitError) and exc.retry_after is not None:
        return max(0.0, exc.retry_after)
    delay = policy.base_delay * (policy.backoff_factor**attempt)
    if policy.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(operation: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
    """Await ``operation()`` and retry transient failures per *policy*.

    Raises
    ------
    OpenF1TransportError
        The last transient failure once the retry budget is spent.
    Exception
        Any non-retryable error, unchanged, on first occurrence.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc) or attempt >= policy.max_retries:
                raise
            delay = compute_delay(policy, attempt, exc)
            attempt += 1
            _logger.info(
                "Transient failure (%s), retry %d/%d in %.2fs",
                exc,
                attempt,
                policy.max_retries,
                delay,
            )
            await asyncio.sleep(delay)
