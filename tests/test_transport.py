from __future__ import annotations

import json
from typing import Any

import aiohttp
import pytest

from tokenvote._transport import HttpTransport
from tokenvote.exceptions import TokenVoteTransportError


class _FakeResponse:
    def __init__(self, status: int, text: str) -> None:
        self.status = status
        self._text = text

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeHttp:
    def __init__(self, response: _FakeResponse | None = None, error: BaseException | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append((method, url, kwargs))
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return self._response


@pytest.mark.asyncio
async def test_get_json_returns_decoded_body() -> None:
    http = _FakeHttp(_FakeResponse(200, '[{"address": "A1"}]'))
    transport = HttpTransport(http, timeout=3.0)  # type: ignore[arg-type]

    body = await transport.get_json("https://tokens.example/tokens", params={"pageSize": "10"})

    assert body == [{"address": "A1"}]
    method, url, kwargs = http.calls[0]
    assert (method, url) == ("GET", "https://tokens.example/tokens")
    assert kwargs["params"] == {"pageSize": "10"}
    assert kwargs["data"] is None
    assert kwargs["timeout"].total == 3.0


@pytest.mark.asyncio
async def test_post_json_sends_compact_json() -> None:
    http = _FakeHttp(_FakeResponse(200, '{"writeResults": [{}]}'))
    transport = HttpTransport(http)  # type: ignore[arg-type]

    await transport.post_json("https://store.example/commit", {"writes": [{"a": 1}]})

    _method, _url, kwargs = http.calls[0]
    assert json.loads(kwargs["data"]) == {"writes": [{"a": 1}]}
    assert kwargs["headers"]["content-type"].startswith("application/json")


@pytest.mark.asyncio
async def test_non_2xx_raises_with_status() -> None:
    transport = HttpTransport(_FakeHttp(_FakeResponse(500, "internal error")))  # type: ignore[arg-type]

    with pytest.raises(TokenVoteTransportError) as excinfo:
        await transport.get_json("https://tokens.example/tokens")

    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_invalid_json_raises() -> None:
    transport = HttpTransport(_FakeHttp(_FakeResponse(200, "<html>")))  # type: ignore[arg-type]

    with pytest.raises(TokenVoteTransportError, match="Invalid JSON"):
        await transport.get_json("https://tokens.example/tokens")


@pytest.mark.asyncio
async def test_client_error_is_wrapped_and_key_hidden() -> None:
    http = _FakeHttp(error=aiohttp.ClientConnectionError("connection refused"))
    transport = HttpTransport(http)  # type: ignore[arg-type]

    with pytest.raises(TokenVoteTransportError) as excinfo:
        await transport.get_json("https://store.example/list?key=secret")

    assert "secret" not in str(excinfo.value)
    assert excinfo.value.url.endswith("key=<redacted>")
    assert isinstance(excinfo.value.__cause__, aiohttp.ClientConnectionError)


@pytest.mark.asyncio
async def test_timeout_is_wrapped() -> None:
    transport = HttpTransport(_FakeHttp(error=TimeoutError()))  # type: ignore[arg-type]

    with pytest.raises(TokenVoteTransportError, match="timed out"):
        await transport.get_json("https://tokens.example/tokens")


class _UndecodableResponse(_FakeResponse):
    async def text(self) -> str:
        return b"\xff\xfe{}".decode("utf-8")


@pytest.mark.asyncio
async def test_undecodable_body_is_wrapped() -> None:
    transport = HttpTransport(_FakeHttp(_UndecodableResponse(200, "")))  # type: ignore[arg-type]

    with pytest.raises(TokenVoteTransportError, match="Undecodable") as excinfo:
        await transport.get_json("https://store.example/list")

    assert excinfo.value.status_code == 200
    assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)
