"""Cloud Firestore tally store over the REST API.

Reads list the whole collection; writes are single-document commits with
a server-side ``increment`` transform. The live feed re-reads the
collection on a fixed interval and on every change notice, and delivers a
snapshot only when the counts changed.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any, Protocol
from urllib.parse import quote

from tokenvote._constants import FIRESTORE_BASE_URL, FIRESTORE_PAGE_SIZE
from tokenvote._mqtt import ChangeNotice, NoticeListener
from tokenvote._transport import Transport
from tokenvote.exceptions import TallySubscriptionError, TallyWriteError, TokenVoteTransportError
from tokenvote.ingestion.firestore import build_increment_write, decode_tally_documents
from tokenvote.models.tally import Tally, VoteField
from tokenvote.tally.base import OnError, OnUpdate, Subscription, Unsubscribe

_logger = logging.getLogger(__name__)


class NoticeChannel(Protocol):
    """What the store needs from a change-notice runtime."""

    def add_listener(self, listener: NoticeListener) -> Callable[[], None]:
        ...

    def publish(self, notice: ChangeNotice) -> bool:
        ...


def _counts(tallies: dict[str, Tally]) -> dict[str, tuple[int, int]]:
    return {address: tally.counts() for address, tally in tallies.items()}


class _PollingFeed:
    """One subscription's background re-read loop."""

    def __init__(
        self,
        store: FirestoreTallyStore,
        subscription: Subscription,
        *,
        interval: float,
        max_failures: int,
    ) -> None:
        self._store = store
        self._subscription = subscription
        self._interval = interval
        self._max_failures = max_failures
        self._wake = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run())

    @property
    def task(self) -> asyncio.Task[None]:
        return self._task

    def wake(self) -> None:
        self._wake.set()

    def stop(self) -> None:
        self._subscription.cancel()
        self._task.cancel()

    async def _run(self) -> None:
        try:
            await self._poll()
        finally:
            self._store._forget(self)  # noqa: SLF001

    async def _poll(self) -> None:
        last: dict[str, tuple[int, int]] | None = None
        failures = 0
        while self._subscription.active:
            # Cleared before the read so a notice arriving mid-read triggers another pass.
            self._wake.clear()
            try:
                tallies = await self._store.list_tallies()
            except TokenVoteTransportError as exc:
                failures += 1
                _logger.warning(
                    "Tally collection read failed (%d/%d): %s",
                    failures,
                    self._max_failures,
                    exc,
                )
                if failures >= self._max_failures:
                    self._subscription.fail(
                        TallySubscriptionError(f"Live tally feed stopped after {failures} failed reads: {exc}")
                    )
                    break
            except Exception as exc:
                _logger.warning("Tally collection read raised unexpectedly", exc_info=True)
                self._subscription.fail(TallySubscriptionError(f"Live tally feed stopped: {exc!r}"))
                break
            else:
                failures = 0
                counts = _counts(tallies)
                if last is None or counts != last:
                    last = counts
                    self._subscription.deliver(tallies)
            if not self._subscription.active:
                break
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._wake.wait(), self._interval)


class FirestoreTallyStore:
    """Tally store on a Firestore collection with one document per address."""

    def __init__(
        self,
        transport: Transport,
        *,
        project_id: str,
        api_key: str | None = None,
        database: str = "(default)",
        collection: str = "coins",
        poll_interval: float = 5.0,
        max_poll_failures: int = 3,
        notices: NoticeChannel | None = None,
    ) -> None:
        self._transport = transport
        self._project_id = project_id
        self._api_key = api_key
        self._database = database
        self._collection = collection
        self._poll_interval = poll_interval
        self._max_poll_failures = max_poll_failures
        self._notices = notices
        self._feeds: list[_PollingFeed] = []
        self._remove_listener: Callable[[], None] | None = None
        self._closed = False
        if notices is not None:
            self._remove_listener = notices.add_listener(self._on_notice)

    # ------------------------------------------------------------------
    # Resource names
    # ------------------------------------------------------------------

    @property
    def database_path(self) -> str:
        return f"projects/{self._project_id}/databases/{self._database}"

    @property
    def collection_path(self) -> str:
        return f"{self.database_path}/documents/{self._collection}"

    def document_name(self, address: str) -> str:
        if not address or "/" in address or address in {".", ".."}:
            raise ValueError(f"Invalid document id: {address!r}")
        return f"{self.collection_path}/{address}"

    def _params(self, **extra: str) -> dict[str, str]:
        params = dict(extra)
        if self._api_key:
            params["key"] = self._api_key
        return params

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_tallies(self) -> dict[str, Tally]:
        """Read every document of the collection.

        Raises
        ------
        TokenVoteTransportError
            If any page fails to load or is not a JSON object.
        """
        url = f"{FIRESTORE_BASE_URL}/{quote(self.collection_path, safe='/()')}"
        documents: list[Any] = []
        page_token: str | None = None
        while True:
            extra = {"pageSize": str(FIRESTORE_PAGE_SIZE)}
            if page_token:
                extra["pageToken"] = page_token
            body = await self._transport.get_json(url, params=self._params(**extra))
            if not isinstance(body, dict):
                raise TokenVoteTransportError("Firestore list response is not a JSON object", url=url)
            page = body.get("documents")
            if isinstance(page, list):
                documents.extend(page)
            next_token = body.get("nextPageToken")
            if not isinstance(next_token, str) or not next_token:
                break
            page_token = next_token
        tallies = decode_tally_documents(documents)
        _logger.debug("Read %d tally documents from %s", len(tallies), self._collection)
        return tallies

    def subscribe(self, on_update: OnUpdate, on_error: OnError) -> Unsubscribe:
        subscription = Subscription(on_update, on_error)
        if self._closed:
            asyncio.get_running_loop().call_soon(subscription.fail, TallySubscriptionError("Tally store is closed"))
            return subscription.cancel
        feed = _PollingFeed(
            self,
            subscription,
            interval=self._poll_interval,
            max_failures=self._max_poll_failures,
        )
        self._feeds.append(feed)
        return feed.stop

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def increment(self, address: str, field: VoteField) -> None:
        field = VoteField(field)
        try:
            write = build_increment_write(self.document_name(address), field)
        except ValueError as exc:
            raise TallyWriteError(str(exc), address=address, field=field.value) from exc

        url = f"{FIRESTORE_BASE_URL}/{quote(self.database_path, safe='/()')}/documents:commit"
        try:
            await self._transport.post_json(url, {"writes": [write]}, params=self._params())
        except TokenVoteTransportError as exc:
            raise TallyWriteError(
                f"Increment of {field.value} for {address} failed: {exc}",
                address=address,
                field=field.value,
            ) from exc

        _logger.debug("Committed %s increment for %s", field.value, address)
        # Re-read early; the counts still come only from the collection.
        self._wake_feeds()
        if self._notices is not None:
            self._notices.publish(ChangeNotice.now(address, field))

    async def close(self) -> None:
        self._closed = True
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        feeds = self._feeds
        self._feeds = []
        for feed in feeds:
            feed.stop()
        for feed in feeds:
            with contextlib.suppress(asyncio.CancelledError):
                await feed.task

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _on_notice(self, notice: ChangeNotice) -> None:
        _logger.debug("Change notice for %s (%s)", notice.address, notice.field.value)
        self._wake_feeds()

    def _wake_feeds(self) -> None:
        for feed in self._feeds:
            feed.wake()

    def _forget(self, feed: _PollingFeed) -> None:
        if feed in self._feeds:
            self._feeds.remove(feed)
