"""Token catalog model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from tokenvote.ingestion.normalize import safe_float, safe_int, safe_str, string_tuple
from tokenvote.models._base import TokenVoteBaseModel


class CatalogEntry(TokenVoteBaseModel):
    """One token descriptor from the external catalog.

    Fields are mapped from the token list endpoint; the wire uses
    ``logoURI`` and snake_case for the rest.
    """

    address: str
    """Mint address, unique within a catalog snapshot."""
    name: str = ""
    """Display name."""
    symbol: str = ""
    """Ticker symbol."""
    decimals: int = 0
    """Decimal precision of the token amount."""
    logo_uri: str = Field(default="", validation_alias=AliasChoices("logoURI", "logo_uri", "logoUri"))
    """Logo URI; may be unreachable."""
    tags: tuple[str, ...] = ()
    """Classification tags (e.g. ``"lst"``, ``"community"``)."""
    daily_volume: float | None = Field(default=None, validation_alias=AliasChoices("daily_volume", "dailyVolume"))
    """Trailing 24h volume."""
    freeze_authority: str | None = Field(
        default=None,
        validation_alias=AliasChoices("freeze_authority", "freezeAuthority"),
    )
    mint_authority: str | None = Field(
        default=None,
        validation_alias=AliasChoices("mint_authority", "mintAuthority"),
    )

    @field_validator("address", mode="before")
    @classmethod
    def _normalize_address(cls, value: Any) -> str:
        address = safe_str(value)
        if address is None:
            raise ValueError("address must be non-empty")
        return address

    @field_validator("name", "symbol", "logo_uri", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return safe_str(value) or ""

    @field_validator("freeze_authority", "mint_authority", mode="before")
    @classmethod
    def _coerce_optional_str(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("decimals", mode="before")
    @classmethod
    def _coerce_decimals(cls, value: Any) -> int:
        parsed = safe_int(value)
        return parsed if parsed is not None and parsed >= 0 else 0

    @field_validator("daily_volume", mode="before")
    @classmethod
    def _coerce_volume(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> tuple[str, ...]:
        return string_tuple(value)
