"""Custom exception hierarchy for tokenvote."""

from __future__ import annotations


class TokenVoteError(Exception):
    """Base exception for all tokenvote errors."""


class TokenVoteConfigError(TokenVoteError):
    """Invalid or missing configuration."""


class TokenVoteTransportError(TokenVoteError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class CatalogFetchError(TokenVoteTransportError):
    """Token catalog could not be fetched or decoded.

    The catalog fetcher absorbs this error and degrades to an empty
    catalog; it is only visible to code calling the transport directly.
    """


class TallyStoreError(TokenVoteError):
    """Base for tally store failures."""


class TallySubscriptionError(TallyStoreError):
    """The live tally feed became unavailable.

    Delivered at most once to a subscription's ``on_error`` callback;
    no further snapshots follow it.
    """


class TallyWriteError(TallyStoreError):
    """An increment was rejected by the remote store."""

    def __init__(self, message: str, *, address: str = "", field: str = "") -> None:
        self.address = address
        self.field = field
        super().__init__(message)
