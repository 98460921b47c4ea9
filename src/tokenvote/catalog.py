"""Token catalog fetcher."""

from __future__ import annotations

import logging

from tokenvote._transport import Transport
from tokenvote.exceptions import TokenVoteTransportError
from tokenvote.ingestion.catalog import decode_catalog
from tokenvote.models.catalog import CatalogEntry

_logger = logging.getLogger(__name__)


class CatalogFetcher:
    """Fetch the token catalog, degrading to an empty catalog on failure.

    :meth:`fetch` never raises for transport, status or decode problems;
    a failed fetch is logged and yields ``()`` so vote tallies can still
    be displayed. There is no retry and no caching here: freshness is the
    caller's concern.
    """

    def __init__(self, transport: Transport, url: str) -> None:
        self._transport = transport
        self._url = url

    @property
    def url(self) -> str:
        return self._url

    async def fetch(self) -> tuple[CatalogEntry, ...]:
        """Return the current catalog, or ``()`` if it could not be fetched."""
        _logger.debug("Fetching token catalog from %s", self._url)
        try:
            payload = await self._transport.get_json(self._url)
            entries = decode_catalog(payload, url=self._url)
        except TokenVoteTransportError as exc:
            _logger.warning("Token catalog fetch failed: %s", exc)
            return ()
        except Exception:
            _logger.warning("Token catalog fetch failed unexpectedly", exc_info=True)
            return ()
        _logger.debug("Fetched %d catalog entries", len(entries))
        return entries
