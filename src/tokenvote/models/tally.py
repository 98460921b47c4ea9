"""Vote tally model."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import field_validator

from tokenvote.ingestion.normalize import non_negative_or_zero, safe_str
from tokenvote.models._base import TokenVoteBaseModel


class VoteField(StrEnum):
    """Counter fields an increment may target."""

    LIKES = "likes"
    DISLIKES = "dislikes"


class Tally(TokenVoteBaseModel):
    """Like/dislike counters for one token address.

    Missing, negative or malformed counters decode to ``0``.
    """

    address: str
    likes: int = 0
    dislikes: int = 0

    @classmethod
    def empty(cls, address: str) -> Tally:
        """The tally of an address nobody has voted on yet."""
        return cls(address=address, raw={})

    @field_validator("address", mode="before")
    @classmethod
    def _normalize_address(cls, value: Any) -> str:
        address = safe_str(value)
        if address is None:
            raise ValueError("address must be non-empty")
        return address

    @field_validator("likes", "dislikes", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return non_negative_or_zero(value)

    def counts(self) -> tuple[int, int]:
        return self.likes, self.dislikes
