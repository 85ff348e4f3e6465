from __future__ import annotations

from typing import Any

import aiohttp
import pytest

from pyopenf1._transport import HttpTransport, parse_body, parse_retry_after
from pyopenf1.config import OpenF1Config
from pyopenf1.exceptions import OpenF1RateLimitError, OpenF1ServerError, OpenF1TransportError


class _FakeResponse:
    def __init__(self, status: int, text: str, headers: dict[str, str] | None = None) -> None:
        self.status = status
        self._text = text
        self.headers = headers or {}

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    def __init__(self, response: _FakeResponse | Exception) -> None:
        self._response = response
        self.urls: list[str] = []

    def get(self, url: str, **_kwargs: Any) -> _FakeResponse:
        self.urls.append(url)
        if isinstance(self._response, Exception):
            raise self._response
        return self._response


def _transport(response: _FakeResponse | Exception) -> tuple[HttpTransport, _FakeSession]:
    session = _FakeSession(response)
    config = OpenF1Config(base_url="https://api.example.test/v1/")
    return HttpTransport(config, session), session  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_success_returns_parsed_json_and_builds_url() -> None:
    transport, session = _transport(_FakeResponse(200, '[{"driver_number": 1}]'))

    body = await transport.get_json("/drivers", "session_key=9161")

    assert body == [{"driver_number": 1}]
    assert session.urls == ["https://api.example.test/v1/drivers?session_key=9161"]


@pytest.mark.asyncio
async def test_client_error_body_is_returned_not_raised() -> None:
    transport, _ = _transport(_FakeResponse(422, '{"detail": "Too much data"}'))

    assert await transport.get_json("/location", "") == {"detail": "Too much data"}


@pytest.mark.asyncio
async def test_rate_limit_carries_retry_after() -> None:
    transport, _ = _transport(_FakeResponse(429, "", {"Retry-After": "3"}))

    with pytest.raises(OpenF1RateLimitError) as exc_info:
        await transport.get_json("/location", "")

    assert exc_info.value.retry_after == 3.0
    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_server_error_is_retryable_error() -> None:
    transport, _ = _transport(_FakeResponse(503, "Service Unavailable"))

    with pytest.raises(OpenF1ServerError) as exc_info:
        await transport.get_json("/location", "")

    assert exc_info.value.status_code == 503
    assert exc_info.value.endpoint == "/location"


@pytest.mark.asyncio
async def test_connection_error_is_wrapped() -> None:
    transport, _ = _transport(aiohttp.ClientConnectionError("refused"))

    with pytest.raises(OpenF1TransportError) as exc_info:
        await transport.get_json("/sessions", "year=2023")

    assert isinstance(exc_info.value.__cause__, aiohttp.ClientConnectionError)


@pytest.mark.asyncio
async def test_malformed_body_falls_back_to_text() -> None:
    transport, _ = _transport(_FakeResponse(200, "<html>oops</html>"))

    assert await transport.get_json("/sessions", "") == "<html>oops</html>"


def test_parse_body_empty_is_none() -> None:
    assert parse_body("") is None


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ({}, None),
        ({"Retry-After": "2.5"}, 2.5),
        ({"Retry-After": "0"}, None),
        ({"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}, None),
    ],
)
def test_parse_retry_after(headers: dict[str, str], expected: float | None) -> None:
    assert parse_retry_after(headers) == expected
