"""Base model for tokenvote payloads.

Every model decoded from a remote payload inherits from
:class:`TokenVoteBaseModel` which provides:

* frozen instances that ignore unknown keys,
* a ``model_validator(mode="before")`` that drops ``None`` and blank
  string values so the field default is used,
* a ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TokenVoteBaseModel(BaseModel):
    """Base for models decoded from remote payloads."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip empty values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = TokenVoteBaseModel._clean_dict(values)
        # Keep an explicitly passed raw= (e.g. when joining models).
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
