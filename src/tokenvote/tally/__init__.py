"""Tally stores.

A tally store is the single source of truth for vote counts; the board
only ever reads them through a store subscription.
"""

from tokenvote.tally.base import OnError, OnUpdate, Subscription, TallySnapshot, TallyStore, Unsubscribe
from tokenvote.tally.firestore import FirestoreTallyStore
from tokenvote.tally.memory import MemoryTallyStore

__all__ = [
    "FirestoreTallyStore",
    "MemoryTallyStore",
    "OnError",
    "OnUpdate",
    "Subscription",
    "TallySnapshot",
    "TallyStore",
    "Unsubscribe",
]
