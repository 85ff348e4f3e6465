"""HTTP transport for the OpenF1 REST API."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pyopenf1._constants import RETRY_AFTER_HEADER
from pyopenf1.config import OpenF1Config
from pyopenf1.exceptions import OpenF1RateLimitError, OpenF1ServerError, OpenF1TransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that can GET an OpenF1 endpoint and return the decoded body."""

    async def get_json(self, endpoint: str, query: str) -> Any:
        ...


def parse_retry_after(headers: Mapping[str, str]) -> float | None:
    """Return the ``Retry-After`` hint in seconds, or ``None``.

    Only the delta-seconds form is understood; HTTP dates are ignored.
    """
    value = headers.get(RETRY_AFTER_HEADER)
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def parse_body(text: str) -> Any:
    """Decode a response body.

    Empty bodies become ``None``; bodies that are not JSON are returned as
    the raw text so callers can still look at them.
    """
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        _logger.debug("Non-JSON body: %s", text[:200])
        return text


class HttpTransport:
    """GET-only transport mapping HTTP statuses onto the retry taxonomy.

    * 429 -> :class:`OpenF1RateLimitError` (with ``Retry-After`` hint)
    * 5xx -> :class:`OpenF1ServerError`
    * network failures -> :class:`OpenF1TransportError`
    * anything else (2xx, 4xx) -> decoded body, returned as-is
    """

    def __init__(self, config: OpenF1Config, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def get_json(self, endpoint: str, query: str) -> Any:
        url = f"{self._config.base_url}{endpoint}"
        if query:
            url = f"{url}?{query}"
        headers = {"accept": "application/json", "user-agent": self._config.user_agent}

        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                status = resp.status
                _logger.debug("HTTP %s from %s (%d bytes)", status, endpoint, len(text))
                if status == 429:
                    raise OpenF1RateLimitError(
                        f"HTTP 429 from {endpoint}",
                        retry_after=parse_retry_after(resp.headers),
                        endpoint=endpoint,
                    )
                if 500 <= status < 600:
                    raise OpenF1ServerError(
                        f"HTTP {status} from {endpoint}: {text[:200]}",
                        status_code=status,
                        endpoint=endpoint,
                    )
        except OpenF1TransportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise OpenF1TransportError(
                f"Request to {endpoint} failed: {exc!r}",
                endpoint=endpoint,
            ) from exc

        return parse_body(text)
