"""Tally store interface and the subscription handle shared by implementations."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Protocol

from tokenvote.exceptions import TallyStoreError
from tokenvote.models.tally import Tally, VoteField

_logger = logging.getLogger(__name__)

TallySnapshot = Mapping[str, Tally]
OnUpdate = Callable[[TallySnapshot], None]
OnError = Callable[[TallyStoreError], None]
Unsubscribe = Callable[[], None]


class TallyStore(Protocol):
    """Live view of per-address vote tallies backed by a remote store."""

    def subscribe(self, on_update: OnUpdate, on_error: OnError) -> Unsubscribe:
        """Open a live feed of full ``address -> Tally`` snapshots.

        An initial snapshot (possibly empty) follows right after
        establishment. ``on_error`` fires at most once and ends delivery.
        Must be called from the event loop thread.
        """
        ...

    async def increment(self, address: str, field: VoteField) -> None:
        """Atomically add one to *field* of the document keyed by *address*."""
        ...

    async def close(self) -> None:
        ...


class Subscription:
    """Callback pair with at-most-once error and no delivery after termination."""

    def __init__(self, on_update: OnUpdate, on_error: OnError) -> None:
        self._on_update = on_update
        self._on_error = on_error
        self._active = True
        self.delivered = 0

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, snapshot: TallySnapshot) -> None:
        if not self._active:
            return
        self.delivered += 1
        try:
            self._on_update(dict(snapshot))
        except Exception:
            _logger.warning("Tally update callback failed", exc_info=True)

    def fail(self, error: TallyStoreError) -> None:
        if not self._active:
            return
        self._active = False
        try:
            self._on_error(error)
        except Exception:
            _logger.warning("Tally error callback failed", exc_info=True)

    def cancel(self) -> None:
        self._active = False
