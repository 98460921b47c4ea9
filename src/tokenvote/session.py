"""Session wiring: builds the fetcher, the tally store and the board from config."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from tokenvote._mqtt import TallyNoticeRuntime, start_notice_runtime
from tokenvote._transport import HttpTransport
from tokenvote.catalog import CatalogFetcher
from tokenvote.config import TokenVoteConfig
from tokenvote.exceptions import TokenVoteError
from tokenvote.state.board import CatalogSource, VoteBoard
from tokenvote.tally.base import TallyStore
from tokenvote.tally.firestore import FirestoreTallyStore
from tokenvote.tally.memory import MemoryTallyStore

_logger = logging.getLogger(__name__)


class VoteSession:
    """One viewer session.

    Usage::

        async with VoteSession(TokenVoteConfig.from_env()) as session:
            board = session.board
            await board.wait_until_ready()

    Everything the session builds it also releases on exit, in reverse
    order: the board (and its subscription), the store, the MQTT runtime
    and, unless it was passed in, the HTTP session.
    """

    def __init__(
        self,
        config: TokenVoteConfig | None = None,
        *,
        http_session: aiohttp.ClientSession | None = None,
        tally_store: TallyStore | None = None,
        catalog_source: CatalogSource | None = None,
    ) -> None:
        self._config = config or TokenVoteConfig()
        self._external_http = http_session is not None
        self._http_session = http_session
        self._external_store = tally_store is not None
        self._store = tally_store
        self._catalog_source = catalog_source
        self._notices: TallyNoticeRuntime | None = None
        self._board: VoteBoard | None = None

    @property
    def config(self) -> TokenVoteConfig:
        return self._config

    @property
    def board(self) -> VoteBoard:
        if self._board is None:
            raise TokenVoteError("Session not started. Use 'async with VoteSession(...) as session:'")
        return self._board

    @property
    def store(self) -> TallyStore:
        if self._store is None:
            raise TokenVoteError("Session not started. Use 'async with VoteSession(...) as session:'")
        return self._store

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> VoteSession:
        self._config.validate()
        try:
            await self._open()
        except BaseException:
            await self._shutdown()
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._shutdown()

    async def _open(self) -> None:
        loop = asyncio.get_running_loop()
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        transport = HttpTransport(self._http_session, timeout=self._config.request_timeout)

        fetcher = self._catalog_source or CatalogFetcher(transport, self._config.catalog_url)

        if self._store is None:
            if self._config.backend == "firestore":
                self._notices = await start_notice_runtime(self._config, loop, _logger)
                self._store = FirestoreTallyStore(
                    transport,
                    project_id=self._config.firestore_project_id or "",
                    api_key=self._config.firestore_api_key,
                    database=self._config.firestore_database,
                    collection=self._config.collection,
                    poll_interval=self._config.poll_interval,
                    max_poll_failures=self._config.max_poll_failures,
                    notices=self._notices,
                )
            else:
                _logger.info("No Firestore project configured; votes are kept in memory")
                self._store = MemoryTallyStore()

        self._board = VoteBoard(fetcher, self._store)
        self._board.start()

    async def _shutdown(self) -> None:
        board = self._board
        try:
            if board is not None:
                await board.close()
        finally:
            try:
                if self._store is not None and not self._external_store:
                    await self._store.close()
            finally:
                notices = self._notices
                self._notices = None
                if notices is not None:
                    try:
                        await asyncio.get_running_loop().run_in_executor(None, notices.stop)
                    except Exception:
                        _logger.debug("MQTT runtime stop failed", exc_info=True)
                if not self._external_http and self._http_session is not None:
                    await self._http_session.close()
                    self._http_session = None
