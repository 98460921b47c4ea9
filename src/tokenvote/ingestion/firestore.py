"""Firestore REST document codec.

Firestore encodes every field as a typed value object, e.g.
``{"likes": {"integerValue": "3"}}``. This module turns collection
listings into :class:`Tally` mappings and builds the commit payload for
an atomic increment.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from tokenvote.models.tally import Tally, VoteField

_logger = logging.getLogger(__name__)


def decode_value(value: Any) -> Any:
    """Unwrap a Firestore typed value into a plain Python value.

    Unknown value kinds decode to ``None``.
    """
    if not isinstance(value, Mapping):
        return None
    if "integerValue" in value:
        return value["integerValue"]
    if "doubleValue" in value:
        return value["doubleValue"]
    if "stringValue" in value:
        return value["stringValue"]
    if "booleanValue" in value:
        return value["booleanValue"]
    if "nullValue" in value:
        return None
    if "mapValue" in value:
        fields = value["mapValue"].get("fields") if isinstance(value["mapValue"], Mapping) else None
        return decode_fields(fields)
    if "arrayValue" in value:
        items = value["arrayValue"].get("values") if isinstance(value["arrayValue"], Mapping) else None
        return [decode_value(item) for item in items or []]
    return None


def decode_fields(fields: Any) -> dict[str, Any]:
    if not isinstance(fields, Mapping):
        return {}
    return {str(key): decode_value(val) for key, val in fields.items()}


def document_id(name: Any) -> str | None:
    """Last path segment of a document resource name."""
    if not isinstance(name, str) or not name:
        return None
    doc_id = name.rsplit("/", 1)[-1].strip()
    return doc_id or None


def decode_tally_document(document: Any) -> Tally | None:
    """Decode one listed document; ``None`` when it has no usable id."""
    if not isinstance(document, Mapping):
        return None
    address = document_id(document.get("name"))
    if address is None:
        return None
    data = decode_fields(document.get("fields"))
    try:
        return Tally.model_validate({**data, "address": address})
    except ValidationError:
        _logger.debug("Dropping undecodable tally document %s", address, exc_info=True)
        return None


def decode_tally_documents(documents: Iterable[Any]) -> dict[str, Tally]:
    tallies: dict[str, Tally] = {}
    for document in documents:
        tally = decode_tally_document(document)
        if tally is not None:
            tallies[tally.address] = tally
    return tallies


def build_increment_write(document_name: str, field: VoteField, amount: int = 1) -> dict[str, Any]:
    """Build a commit write that atomically adds *amount* to *field*.

    An ``update`` with an empty mask and no precondition creates the
    document when absent and leaves every existing field untouched; the
    ``increment`` transform is applied server-side.
    """
    return {
        "update": {"name": document_name, "fields": {}},
        "updateMask": {"fieldPaths": []},
        "updateTransforms": [
            {
                "fieldPath": field.value,
                "increment": {"integerValue": str(amount)},
            }
        ],
    }
