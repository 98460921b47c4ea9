"""In-process tally store.

Documents live in a dict on the event loop. An increment updates its
document in one synchronous step, so concurrent increments cannot lose
updates, and then schedules a notification. Several increments landing
in the same loop iteration are coalesced into one delivered snapshot.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any

from tokenvote.exceptions import TallySubscriptionError, TallyWriteError
from tokenvote.models.tally import Tally, VoteField
from tokenvote.tally.base import OnError, OnUpdate, Subscription, Unsubscribe

_logger = logging.getLogger(__name__)


class MemoryTallyStore:
    """Tally store backed by an in-process document map.

    Parameters
    ----------
    write_delay : float
        Seconds each increment waits before it lands, simulating the
        round-trip to a remote store.
    """

    def __init__(self, *, write_delay: float = 0.0) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._subscriptions: list[Subscription] = []
        self._notify_handle: asyncio.Handle | None = None
        self._write_delay = write_delay
        self._closed = False
        self.fail_writes = False
        """When set, increments raise :class:`TallyWriteError`."""
        self.commands: list[tuple[str, VoteField]] = []
        """Every increment received, in arrival order."""

    # ------------------------------------------------------------------
    # Document access
    # ------------------------------------------------------------------

    def seed(self, address: str, **fields: Any) -> None:
        """Write a document directly, bypassing subscriptions."""
        self._documents[address] = dict(fields)

    def document(self, address: str) -> dict[str, Any] | None:
        doc = self._documents.get(address)
        return copy.deepcopy(doc) if doc is not None else None

    def snapshot(self) -> dict[str, Tally]:
        """Decode the current documents into tallies."""
        return {address: Tally.model_validate({**doc, "address": address}) for address, doc in self._documents.items()}

    # ------------------------------------------------------------------
    # TallyStore
    # ------------------------------------------------------------------

    def subscribe(self, on_update: OnUpdate, on_error: OnError) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        subscription = Subscription(on_update, on_error)
        if self._closed:
            loop.call_soon(subscription.fail, TallySubscriptionError("Tally store is closed"))
            return subscription.cancel
        self._subscriptions.append(subscription)
        loop.call_soon(self._deliver_initial, subscription)

        def unsubscribe() -> None:
            subscription.cancel()
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    async def increment(self, address: str, field: VoteField) -> None:
        field = VoteField(field)
        self.commands.append((address, field))
        # Suspend before landing so racing writers interleave here.
        await asyncio.sleep(self._write_delay)
        if self._closed or self.fail_writes:
            raise TallyWriteError(
                f"Increment of {field.value} for {address} rejected",
                address=address,
                field=field.value,
            )
        doc = self._documents.setdefault(address, {})
        doc[field.value] = int(doc.get(field.value) or 0) + 1
        _logger.debug("Incremented %s for %s to %d", field.value, address, doc[field.value])
        self._schedule_notify()

    async def close(self) -> None:
        self._closed = True
        if self._notify_handle is not None:
            self._notify_handle.cancel()
            self._notify_handle = None
        subscriptions = self._subscriptions
        self._subscriptions = []
        for subscription in subscriptions:
            subscription.cancel()

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------

    def break_feed(self, message: str = "Live tally feed lost") -> None:
        """Terminate every open subscription with an error."""
        subscriptions = self._subscriptions
        self._subscriptions = []
        for subscription in subscriptions:
            subscription.fail(TallySubscriptionError(message))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _deliver_initial(self, subscription: Subscription) -> None:
        if subscription.delivered == 0:
            subscription.deliver(self.snapshot())

    def _schedule_notify(self) -> None:
        if self._notify_handle is not None:
            return
        self._notify_handle = asyncio.get_running_loop().call_soon(self._notify)

    def _notify(self) -> None:
        self._notify_handle = None
        snapshot = self.snapshot()
        for subscription in list(self._subscriptions):
            subscription.deliver(snapshot)
