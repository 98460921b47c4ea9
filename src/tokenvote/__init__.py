"""tokenvote - Live community vote board for token catalogs."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tokenvote")
except PackageNotFoundError:
    __version__ = "0+local"
from tokenvote.catalog import CatalogFetcher
from tokenvote.config import TokenVoteConfig
from tokenvote.exceptions import (
    CatalogFetchError,
    TallyStoreError,
    TallySubscriptionError,
    TallyWriteError,
    TokenVoteConfigError,
    TokenVoteError,
    TokenVoteTransportError,
)
from tokenvote.models import CatalogEntry, Tally, ViewEntry, VoteField
from tokenvote.session import VoteSession
from tokenvote.state import BoardState, VoteBoard, derive_view, join_catalog
from tokenvote.tally import FirestoreTallyStore, MemoryTallyStore, TallyStore

__all__ = [
    "__version__",
    "BoardState",
    "CatalogEntry",
    "CatalogFetchError",
    "CatalogFetcher",
    "FirestoreTallyStore",
    "MemoryTallyStore",
    "Tally",
    "TallyStore",
    "TallyStoreError",
    "TallySubscriptionError",
    "TallyWriteError",
    "TokenVoteConfig",
    "TokenVoteConfigError",
    "TokenVoteError",
    "TokenVoteTransportError",
    "ViewEntry",
    "VoteBoard",
    "VoteField",
    "VoteSession",
    "derive_view",
    "join_catalog",
]
