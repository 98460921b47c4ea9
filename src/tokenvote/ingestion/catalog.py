"""Decode token catalog payloads into :class:`CatalogEntry` tuples."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from tokenvote.exceptions import CatalogFetchError
from tokenvote.models.catalog import CatalogEntry

_logger = logging.getLogger(__name__)


def decode_catalog(payload: Any, *, url: str = "") -> tuple[CatalogEntry, ...]:
    """Decode a catalog response body.

    The body must be a JSON array; anything else fails the whole
    catalog. Individual entries that do not validate are skipped, and
    a duplicated address keeps its first occurrence.

    Raises
    ------
    CatalogFetchError
        If *payload* is not a list.
    """
    if not isinstance(payload, list):
        raise CatalogFetchError(
            f"Catalog body is {type(payload).__name__}, expected a JSON array",
            url=url,
        )

    entries: list[CatalogEntry] = []
    seen: set[str] = set()
    skipped = 0
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            skipped += 1
            continue
        try:
            entry = CatalogEntry.model_validate(item)
        except ValidationError as exc:
            skipped += 1
            _logger.debug("Skipping catalog entry #%d: %s", index, exc.errors(include_url=False))
            continue
        if entry.address in seen:
            skipped += 1
            continue
        seen.add(entry.address)
        entries.append(entry)

    if skipped:
        _logger.debug("Catalog decode skipped %d of %d entries", skipped, len(payload))
    return tuple(entries)
