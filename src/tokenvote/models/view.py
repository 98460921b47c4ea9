"""Joined view model rendered by the presentation layer."""

from __future__ import annotations

from tokenvote._constants import EXPLORER_TOKEN_URL
from tokenvote.models.catalog import CatalogEntry
from tokenvote.models.tally import Tally


class ViewEntry(CatalogEntry):
    """A catalog entry joined with its tally."""

    likes: int = 0
    dislikes: int = 0

    @classmethod
    def join(cls, entry: CatalogEntry, tally: Tally | None) -> ViewEntry:
        """Join *entry* with *tally*, defaulting to ``{0, 0}`` when absent."""
        likes, dislikes = tally.counts() if tally is not None else (0, 0)
        return cls(
            **entry.model_dump(exclude={"raw"}),
            raw=entry.raw,
            likes=likes,
            dislikes=dislikes,
        )

    @property
    def short_address(self) -> str:
        """Abbreviated address, e.g. ``"So11...1112"``."""
        if len(self.address) <= 8:
            return self.address
        return f"{self.address[:4]}...{self.address[-4:]}"

    @property
    def explorer_url(self) -> str:
        return EXPLORER_TOKEN_URL.format(address=self.address)
