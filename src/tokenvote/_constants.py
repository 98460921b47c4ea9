"""Shared constants for tokenvote."""

from __future__ import annotations

USER_AGENT = "tokenvote/0 (+aiohttp)"

DEFAULT_CATALOG_URL = "https://tokens.jup.ag/tokens?tags=lst,community"

FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"

# Firestore caps list page size at 300 documents.
FIRESTORE_PAGE_SIZE = 300

EXPLORER_TOKEN_URL = "https://birdeye.so/token/{address}?chain=solana"
