"""Data models for tokenvote."""

from tokenvote.models._base import TokenVoteBaseModel
from tokenvote.models.catalog import CatalogEntry
from tokenvote.models.tally import Tally, VoteField
from tokenvote.models.view import ViewEntry

__all__ = [
    "CatalogEntry",
    "Tally",
    "TokenVoteBaseModel",
    "ViewEntry",
    "VoteField",
]
