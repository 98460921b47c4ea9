"""JSON-over-HTTP transport shared by the catalog fetcher and the Firestore store."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from tokenvote._constants import USER_AGENT
from tokenvote._redact import redact_for_log, redact_url
from tokenvote.exceptions import TokenVoteTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the fetcher and the stores.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, url: str, *, params: Mapping[str, str] | None = None) -> Any:
        ...

    async def post_json(
        self,
        url: str,
        body: Mapping[str, Any],
        *,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        ...


class HttpTransport:
    """aiohttp transport that decodes JSON bodies and maps failures to one error type."""

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float = 15.0) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_json(self, url: str, *, params: Mapping[str, str] | None = None) -> Any:
        """GET *url* and return the decoded JSON body."""
        return await self._request("GET", url, params=params)

    async def post_json(
        self,
        url: str,
        body: Mapping[str, Any],
        *,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        """POST *body* as JSON to *url* and return the decoded JSON body."""
        return await self._request("POST", url, params=params, body=body)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> Any:
        headers = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        data: str | None = None
        if body is not None:
            headers["content-type"] = "application/json; charset=UTF-8"
            data = json.dumps(body, separators=(",", ":"))

        shown_url = redact_url(url)
        _logger.debug("%s %s params=%s", method, shown_url, redact_for_log(dict(params or {})))

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params) if params else None,
                data=data,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                try:
                    text = await resp.text()
                except UnicodeDecodeError as exc:
                    raise TokenVoteTransportError(
                        f"Undecodable body from {shown_url}",
                        status_code=resp.status,
                        url=shown_url,
                    ) from exc
                if not 200 <= resp.status < 300:
                    raise TokenVoteTransportError(
                        f"HTTP {resp.status} from {shown_url}: {text[:200]}",
                        status_code=resp.status,
                        url=shown_url,
                    )
        except TokenVoteTransportError:
            raise
        except TimeoutError as exc:
            raise TokenVoteTransportError(f"Request to {shown_url} timed out", url=shown_url) from exc
        except aiohttp.ClientError as exc:
            raise TokenVoteTransportError(f"Request to {shown_url} failed: {exc}", url=shown_url) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TokenVoteTransportError(
                f"Invalid JSON from {shown_url}: {text[:200]}",
                status_code=resp.status,
                url=shown_url,
            ) from exc
