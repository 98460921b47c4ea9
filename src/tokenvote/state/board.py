"""Vote board: merges the catalog with the live tally feed.

This is the only component that writes the view model. All of its state
is mutated on the event loop thread, from store callbacks and from the
tasks it spawns itself.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Any, Protocol

from tokenvote.exceptions import TallyStoreError, TokenVoteError
from tokenvote.models.catalog import CatalogEntry
from tokenvote.models.tally import Tally, VoteField
from tokenvote.models.view import ViewEntry
from tokenvote.state.view import derive_view, join_catalog
from tokenvote.tally.base import TallyStore, Unsubscribe

_logger = logging.getLogger(__name__)

BoardListener = Callable[["VoteBoard"], None]


class CatalogSource(Protocol):
    async def fetch(self) -> tuple[CatalogEntry, ...]:
        ...


class BoardState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    CLOSED = "closed"


class VoteBoard:
    """Ordered, searchable token list with live vote counts.

    Usage::

        async with VoteBoard(fetcher, store) as board:
            await board.wait_until_ready()
            board.set_search_term("sol")
            board.on_like(board.entries[0].address)

    Counts change only when the store delivers a new snapshot; a vote
    never touches the local entries.
    """

    def __init__(self, fetcher: CatalogSource, store: TallyStore) -> None:
        self._fetcher = fetcher
        self._store = store
        self._state = BoardState.IDLE
        self._loading = True
        self._catalog: tuple[CatalogEntry, ...] | None = None
        self._catalog_task: asyncio.Task[tuple[CatalogEntry, ...]] | None = None
        self._tallies: dict[str, Tally] = {}
        self._has_snapshot = False
        self._joined: tuple[ViewEntry, ...] = ()
        self._search_term = ""
        self._view: tuple[ViewEntry, ...] = ()
        self._unsubscribe: Unsubscribe | None = None
        self._feed_error: TallyStoreError | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[BoardListener] = []
        self._settled = asyncio.Event()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> VoteBoard:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def start(self) -> None:
        """Open the live tally subscription."""
        if self._state != BoardState.IDLE:
            raise TokenVoteError(f"VoteBoard cannot start from state {self._state.value}")
        self._state = BoardState.LOADING
        self._unsubscribe = self._store.subscribe(self._on_tallies, self._on_feed_error)

    async def close(self) -> None:
        """Release the subscription and let in-flight work finish.

        Pending votes still reach the store; late catalog results and
        snapshots are discarded.
        """
        if self._state == BoardState.CLOSED:
            return
        self._state = BoardState.CLOSED
        unsubscribe = self._unsubscribe
        self._unsubscribe = None
        try:
            if unsubscribe is not None:
                unsubscribe()
        finally:
            self._listeners.clear()
            self._settled.set()
            pending = list(self._tasks)
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    @property
    def alive(self) -> bool:
        return self._state in (BoardState.LOADING, BoardState.READY)

    # ------------------------------------------------------------------
    # Presentation boundary
    # ------------------------------------------------------------------

    @property
    def state(self) -> BoardState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def entries(self) -> tuple[ViewEntry, ...]:
        """Filtered entries, most liked first."""
        return self._view

    @property
    def all_entries(self) -> tuple[ViewEntry, ...]:
        """Every joined entry in catalog order, ignoring the search term."""
        return self._joined

    @property
    def tallies(self) -> Mapping[str, Tally]:
        """Latest snapshot delivered by the store."""
        return dict(self._tallies)

    @property
    def feed_error(self) -> TallyStoreError | None:
        """Error that ended the live feed, if any."""
        return self._feed_error

    @property
    def search_term(self) -> str:
        return self._search_term

    @search_term.setter
    def search_term(self, value: str) -> None:
        self.set_search_term(value)

    def set_search_term(self, value: str) -> None:
        self._search_term = value
        self._rederive()

    def add_listener(self, listener: BoardListener) -> Callable[[], None]:
        """Call *listener* after every change to entries or loading state."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def wait_until_ready(self, timeout: float | None = None) -> bool:
        """Wait for the first join (or the end of the feed).

        Returns ``False`` on timeout.
        """
        try:
            await asyncio.wait_for(self._settled.wait(), timeout)
        except TimeoutError:
            return False
        return True

    def on_like(self, address: str) -> asyncio.Task[None]:
        """Dispatch one like for *address*."""
        return self._dispatch_vote(address, VoteField.LIKES)

    def on_dislike(self, address: str) -> asyncio.Task[None]:
        """Dispatch one dislike for *address*."""
        return self._dispatch_vote(address, VoteField.DISLIKES)

    async def refresh_catalog(self) -> None:
        """Re-fetch the catalog and rejoin it with the latest tallies."""
        if not self.alive:
            return
        catalog = await self._fetch_catalog()
        if not self.alive:
            return
        self._catalog = catalog
        if self._has_snapshot:
            self._replace(join_catalog(catalog, self._tallies))

    # ------------------------------------------------------------------
    # Store callbacks
    # ------------------------------------------------------------------

    def _on_tallies(self, tallies: Mapping[str, Tally]) -> None:
        if not self.alive:
            return
        self._tallies = dict(tallies)
        self._has_snapshot = True
        if self._catalog is not None:
            self._replace(join_catalog(self._catalog, self._tallies))
            return
        self._spawn(self._join_after_catalog())

    def _on_feed_error(self, error: TallyStoreError) -> None:
        if not self.alive:
            return
        _logger.warning("Live tally feed stopped: %s", error)
        self._feed_error = error
        self._unsubscribe = None
        # Settles the board; entries stay whatever was joined last.
        if self._state == BoardState.LOADING:
            self._state = BoardState.READY
        self._settled.set()
        if self._loading:
            self._loading = False
            self._notify()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _join_after_catalog(self) -> None:
        # Snapshots arriving during the first fetch share one catalog task.
        if self._catalog_task is None:
            self._catalog_task = asyncio.get_running_loop().create_task(self._fetch_catalog())
        catalog = await self._catalog_task
        if not self.alive:
            return
        if self._catalog is None:
            self._catalog = catalog
        self._replace(join_catalog(self._catalog, self._tallies))

    async def _fetch_catalog(self) -> tuple[CatalogEntry, ...]:
        try:
            return tuple(await self._fetcher.fetch())
        except Exception:
            _logger.warning("Catalog source raised; continuing with an empty catalog", exc_info=True)
            return ()

    def _replace(self, joined: tuple[ViewEntry, ...]) -> None:
        self._joined = joined
        self._loading = False
        if self._state == BoardState.LOADING:
            self._state = BoardState.READY
            _logger.debug("VoteBoard ready with %d entries", len(joined))
        self._settled.set()
        self._rederive()

    def _rederive(self) -> None:
        self._view = derive_view(self._joined, self._search_term)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                _logger.warning("VoteBoard listener failed", exc_info=True)

    def _dispatch_vote(self, address: str, field: VoteField) -> asyncio.Task[None]:
        if not self.alive:
            raise TokenVoteError("VoteBoard is not running")
        return self._spawn(self._send_vote(address, field))

    async def _send_vote(self, address: str, field: VoteField) -> None:
        try:
            await self._store.increment(address, field)
        except TallyStoreError as exc:
            _logger.warning("Vote %s for %s was not recorded: %s", field.value, address, exc)
        except Exception:
            _logger.warning("Vote %s for %s failed", field.value, address, exc_info=True)

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
