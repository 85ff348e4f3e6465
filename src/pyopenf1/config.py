"""Client and fetcher configuration for pyopenf1."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from pyopenf1._constants import BASE_URL, USER_AGENT
from pyopenf1._retry import RetryPolicy
from pyopenf1.exceptions import OpenF1ConfigError

ProgressCallback = Callable[[int, int], None]


def _env_number(env: Mapping[str, str], key: str, cast: Callable[[str], Any]) -> Any:
    value = env.get(key)
    if value is None:
        return None
    try:
        return cast(value.strip())
    except ValueError as exc:
        raise OpenF1ConfigError(f"{key} is not a valid number: {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class FetcherConfig:
    """Options for :class:`~pyopenf1.fetcher.WindowFetcher`.

    Parameters
    ----------
    initial_window_ms : int
        Starting window size in milliseconds.
    min_window_ms : int
        Floor below which the window never shrinks.
    max_retries_per_window : int
        Retry budget handed to the retry engine for each window attempt.
    delay_between_requests_ms : int
        Fixed pause after every accepted window.
    max_floor_rejections : int
        How many "too much data" rejections are tolerated once the window
        is at ``min_window_ms`` before the fetch fails.
    window_base_delay : float
        Backoff base (seconds) for the window-level retry.
    progress : callable or None
        ``progress(done_ms, total_ms)``, called once per accepted window.
    """

    initial_window_ms: int = 5000
    min_window_ms: int = 250
    max_retries_per_window: int = 4
    delay_between_requests_ms: int = 200
    max_floor_rejections: int = 5
    window_base_delay: float = 0.5
    progress: ProgressCallback | None = None

    def __post_init__(self) -> None:
        if self.min_window_ms <= 0:
            raise OpenF1ConfigError(f"min_window_ms must be positive, got {self.min_window_ms}")
        if self.initial_window_ms < self.min_window_ms:
            raise OpenF1ConfigError(
                f"initial_window_ms ({self.initial_window_ms}) is below min_window_ms ({self.min_window_ms})"
            )
        if self.max_retries_per_window < 0:
            raise OpenF1ConfigError("max_retries_per_window must be >= 0")
        if self.delay_between_requests_ms < 0:
            raise OpenF1ConfigError("delay_between_requests_ms must be >= 0")
        if self.max_floor_rejections < 0:
            raise OpenF1ConfigError("max_floor_rejections must be >= 0")

    @property
    def window_retry(self) -> RetryPolicy:
        """Retry policy used around each window request."""
        return RetryPolicy(
            max_retries=self.max_retries_per_window,
            base_delay=self.window_base_delay,
            backoff_factor=2.0,
            jitter=True,
        )


@dataclasses.dataclass(frozen=True)
class OpenF1Config:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        API base URL, without trailing slash.
    request_timeout : float
        Total timeout for one HTTP request in seconds.
    user_agent : str
        ``User-Agent`` header value.
    retry : RetryPolicy
        Transport-level retry policy applied to every query.
    data_dir : Path
        Directory holding saved race files.
    cache_dir : Path
        Directory holding cached race lists and driver rosters.
    delay_between_drivers : float
        Seconds to wait between drivers when archiving a whole session.
    fetcher : FetcherConfig
        Windowed fetch options.
    """

    base_url: str = BASE_URL
    request_timeout: float = 30.0
    user_agent: str = USER_AGENT
    retry: RetryPolicy = dataclasses.field(default_factory=RetryPolicy)
    data_dir: Path = dataclasses.field(default_factory=lambda: Path.cwd() / "f1_data")
    cache_dir: Path = dataclasses.field(default_factory=lambda: Path.cwd() / ".f1_cache")
    delay_between_drivers: float = 1.0
    fetcher: FetcherConfig = dataclasses.field(default_factory=FetcherConfig)

    def __post_init__(self) -> None:
        if not self.base_url:
            raise OpenF1ConfigError("base_url must not be empty")
        if self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.request_timeout <= 0:
            raise OpenF1ConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.delay_between_drivers < 0:
            raise OpenF1ConfigError("delay_between_drivers must be >= 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> OpenF1Config:
        """Create configuration from ``OPENF1_*`` environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        OpenF1ConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        base_url = env.get("OPENF1_BASE_URL")
        if base_url:
            config_kwargs["base_url"] = base_url
        for env_key, field_name in (("OPENF1_DATA_DIR", "data_dir"), ("OPENF1_CACHE_DIR", "cache_dir")):
            val = env.get(env_key)
            if val:
                config_kwargs[field_name] = Path(val).expanduser()

        timeout = _env_number(env, "OPENF1_TIMEOUT", float)
        if timeout is not None:
            config_kwargs["request_timeout"] = timeout

        driver_delay = _env_number(env, "OPENF1_DRIVER_DELAY", float)
        if driver_delay is not None:
            config_kwargs["delay_between_drivers"] = driver_delay

        max_retries = _env_number(env, "OPENF1_MAX_RETRIES", int)
        if max_retries is not None and "retry" not in overrides:
            config_kwargs["retry"] = RetryPolicy(max_retries=max_retries)

        fetcher_kwargs: dict[str, Any] = {}
        for env_key, field_name in (
            ("OPENF1_INITIAL_WINDOW_MS", "initial_window_ms"),
            ("OPENF1_MIN_WINDOW_MS", "min_window_ms"),
        ):
            val = _env_number(env, env_key, int)
            if val is not None:
                fetcher_kwargs[field_name] = val
        if fetcher_kwargs and "fetcher" not in overrides:
            config_kwargs["fetcher"] = FetcherConfig(**fetcher_kwargs)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
