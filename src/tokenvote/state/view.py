"""Pure view derivation.

The board recomputes its entries wholesale from these functions; nothing
here holds state, so the same inputs always give the same ordered output.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from tokenvote.models.catalog import CatalogEntry
from tokenvote.models.tally import Tally
from tokenvote.models.view import ViewEntry


def join_catalog(catalog: Sequence[CatalogEntry], tallies: Mapping[str, Tally]) -> tuple[ViewEntry, ...]:
    """Join every catalog entry with its tally, in catalog order.

    Tallies for addresses outside the catalog are ignored.
    """
    return tuple(ViewEntry.join(entry, tallies.get(entry.address)) for entry in catalog)


def matches_search(entry: ViewEntry, search_term: str) -> bool:
    needle = search_term.lower()
    return needle in entry.name.lower() or needle in entry.address.lower()


def derive_view(entries: Sequence[ViewEntry], search_term: str = "") -> tuple[ViewEntry, ...]:
    """Filter by *search_term* and order by likes, most liked first.

    The sort is stable: entries with equal likes keep their input order.
    """
    filtered = [entry for entry in entries if matches_search(entry, search_term)]
    return tuple(sorted(filtered, key=lambda entry: -entry.likes))
