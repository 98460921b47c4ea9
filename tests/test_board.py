from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import pytest

from tokenvote.catalog import CatalogFetcher
from tokenvote.exceptions import TokenVoteError, TokenVoteTransportError
from tokenvote.models.catalog import CatalogEntry
from tokenvote.models.tally import VoteField
from tokenvote.state.board import BoardState, VoteBoard
from tokenvote.tally.memory import MemoryTallyStore


async def _wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


class FakeCatalog:
    def __init__(self, entries: Sequence[Mapping[str, Any]] = (), *, delay: float = 0.0) -> None:
        self.entries = [CatalogEntry.model_validate(dict(item)) for item in entries]
        self.delay = delay
        self.calls = 0

    async def fetch(self) -> tuple[CatalogEntry, ...]:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return tuple(self.entries)


class FailingTransport:
    async def get_json(self, url: str, *, params: Mapping[str, str] | None = None) -> Any:
        raise TokenVoteTransportError("HTTP 500 from tokens", status_code=500, url=url)

    async def post_json(self, url: str, body: Mapping[str, Any], *, params: Mapping[str, str] | None = None) -> Any:
        raise AssertionError("unused")


def _rows(board: VoteBoard) -> list[tuple[str, str, int, int]]:
    return [(e.address, e.name, e.likes, e.dislikes) for e in board.entries]


@pytest.mark.asyncio
async def test_like_reaches_the_view_only_through_the_feed() -> None:
    store = MemoryTallyStore()
    catalog = FakeCatalog([{"address": "A", "name": "Foo"}])

    async with VoteBoard(catalog, store) as board:
        assert board.loading is True
        assert board.state == BoardState.LOADING
        assert await board.wait_until_ready(1.0)
        assert _rows(board) == [("A", "Foo", 0, 0)]
        assert board.state == BoardState.READY

        task = board.on_like("A")
        assert _rows(board) == [("A", "Foo", 0, 0)]
        await task

        assert store.commands == [("A", VoteField.LIKES)]
        await _wait_for(lambda: board.entries[0].likes == 1)
        assert _rows(board) == [("A", "Foo", 1, 0)]
        assert board.loading is False
        assert catalog.calls == 1

    assert board.state == BoardState.CLOSED


@pytest.mark.asyncio
async def test_catalog_http_500_gives_empty_ready_view() -> None:
    store = MemoryTallyStore()
    store.seed("A", likes=4)
    fetcher = CatalogFetcher(FailingTransport(), "https://tokens.example/tokens")

    async with VoteBoard(fetcher, store) as board:
        assert await board.wait_until_ready(1.0)
        assert board.entries == ()
        assert board.loading is False


@pytest.mark.asyncio
async def test_raising_catalog_source_is_contained(caplog: pytest.LogCaptureFixture) -> None:
    class Exploding:
        async def fetch(self) -> tuple[CatalogEntry, ...]:
            raise RuntimeError("bad source")

    with caplog.at_level(logging.WARNING, logger="tokenvote.state.board"):
        async with VoteBoard(Exploding(), MemoryTallyStore()) as board:
            assert await board.wait_until_ready(1.0)
            assert board.entries == ()
            assert board.loading is False

    assert "empty catalog" in caplog.text


@pytest.mark.asyncio
async def test_tallies_outside_the_catalog_are_not_surfaced() -> None:
    store = MemoryTallyStore()
    store.seed("A", likes=1)
    store.seed("ZZZ", likes=99, dislikes=3)
    catalog = FakeCatalog([{"address": "A", "name": "Foo"}, {"address": "B", "name": "Bar"}])

    async with VoteBoard(catalog, store) as board:
        await board.wait_until_ready(1.0)
        assert _rows(board) == [("A", "Foo", 1, 0), ("B", "Bar", 0, 0)]
        assert board.tallies["ZZZ"].likes == 99


@pytest.mark.asyncio
async def test_catalog_is_fetched_once_while_snapshots_keep_arriving() -> None:
    store = MemoryTallyStore()
    catalog = FakeCatalog([{"address": "A", "name": "Foo"}, {"address": "B", "name": "Bar"}], delay=0.05)

    async with VoteBoard(catalog, store) as board:
        await _wait_for(lambda: bool(board.tallies) or catalog.calls == 1)
        # Snapshots land while the first fetch is still in flight.
        await store.increment("B", VoteField.LIKES)
        await asyncio.sleep(0.005)
        await store.increment("B", VoteField.LIKES)

        assert await board.wait_until_ready(1.0)
        await _wait_for(lambda: bool(board.entries) and board.entries[0].likes == 2)
        assert _rows(board) == [("B", "Bar", 2, 0), ("A", "Foo", 0, 0)]

        await store.increment("A", VoteField.DISLIKES)
        await _wait_for(lambda: board.all_entries[0].dislikes == 1)

    assert catalog.calls == 1


@pytest.mark.asyncio
async def test_equal_likes_keep_catalog_order() -> None:
    store = MemoryTallyStore()
    for address, likes in (("W", 3), ("X", 3), ("Y", 5), ("Z", 1)):
        store.seed(address, likes=likes)
    catalog = FakeCatalog([{"address": a, "name": a} for a in ("W", "X", "Y", "Z")])

    async with VoteBoard(catalog, store) as board:
        await board.wait_until_ready(1.0)
        assert [e.address for e in board.entries] == ["Y", "W", "X", "Z"]


@pytest.mark.asyncio
async def test_search_term_filters_and_notifies_listeners() -> None:
    store = MemoryTallyStore()
    catalog = FakeCatalog([{"address": "A1", "name": "Foo Token"}, {"address": "B2", "name": "Bar"}])
    seen: list[int] = []

    async with VoteBoard(catalog, store) as board:
        board.add_listener(lambda b: seen.append(len(b.entries)))
        await board.wait_until_ready(1.0)

        board.search_term = "foo"
        assert [e.name for e in board.entries] == ["Foo Token"]
        assert [e.address for e in board.all_entries] == ["A1", "B2"]

        board.set_search_term("")
        assert len(board.entries) == 2

    assert seen == [2, 1, 2]


@pytest.mark.asyncio
async def test_broken_listener_does_not_break_the_board() -> None:
    store = MemoryTallyStore()

    def broken(_board: VoteBoard) -> None:
        raise RuntimeError("render bug")

    async with VoteBoard(FakeCatalog([{"address": "A", "name": "Foo"}]), store) as board:
        board.add_listener(broken)
        assert await board.wait_until_ready(1.0)
        assert _rows(board) == [("A", "Foo", 0, 0)]


@pytest.mark.asyncio
async def test_failed_vote_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    store = MemoryTallyStore()
    store.fail_writes = True

    async with VoteBoard(FakeCatalog([{"address": "A", "name": "Foo"}]), store) as board:
        await board.wait_until_ready(1.0)
        with caplog.at_level(logging.WARNING, logger="tokenvote.state.board"):
            await board.on_dislike("A")
        await asyncio.sleep(0.01)
        assert _rows(board) == [("A", "Foo", 0, 0)]

    assert "was not recorded" in caplog.text


@pytest.mark.asyncio
async def test_each_vote_call_dispatches_exactly_one_increment() -> None:
    store = MemoryTallyStore()

    async with VoteBoard(FakeCatalog([{"address": "A", "name": "Foo"}]), store) as board:
        await board.wait_until_ready(1.0)
        await asyncio.gather(board.on_like("A"), board.on_like("A"), board.on_dislike("A"))
        await _wait_for(lambda: board.entries[0].likes == 2 and board.entries[0].dislikes == 1)

    assert store.commands == [("A", VoteField.LIKES), ("A", VoteField.LIKES), ("A", VoteField.DISLIKES)]


@pytest.mark.asyncio
async def test_feed_error_ends_loading_and_halts_updates() -> None:
    store = MemoryTallyStore()
    catalog = FakeCatalog([{"address": "A", "name": "Foo"}])
    board = VoteBoard(catalog, store)
    board.start()

    store.break_feed()
    assert await board.wait_until_ready(1.0)
    assert board.loading is False
    assert board.state == BoardState.READY
    assert board.feed_error is not None
    assert board.entries == ()

    await store.increment("A", VoteField.LIKES)
    await asyncio.sleep(0.01)
    assert board.entries == ()
    await board.close()


@pytest.mark.asyncio
async def test_late_catalog_after_close_is_discarded() -> None:
    store = MemoryTallyStore()
    catalog = FakeCatalog([{"address": "A", "name": "Foo"}], delay=0.03)
    board = VoteBoard(catalog, store)
    board.start()
    await _wait_for(lambda: catalog.calls == 1)

    await board.close()

    assert board.state == BoardState.CLOSED
    assert board.all_entries == ()
    assert board.loading is True


@pytest.mark.asyncio
async def test_pending_vote_still_lands_on_close() -> None:
    store = MemoryTallyStore(write_delay=0.02)
    board = VoteBoard(FakeCatalog([{"address": "A", "name": "Foo"}]), store)
    board.start()
    await board.wait_until_ready(1.0)

    board.on_like("A")
    await board.close()

    assert store.document("A") == {"likes": 1}


@pytest.mark.asyncio
async def test_vote_after_close_is_rejected() -> None:
    board = VoteBoard(FakeCatalog(), MemoryTallyStore())
    board.start()
    await board.close()
    await board.close()

    with pytest.raises(TokenVoteError):
        board.on_like("A")


@pytest.mark.asyncio
async def test_board_cannot_start_twice() -> None:
    board = VoteBoard(FakeCatalog(), MemoryTallyStore())
    board.start()
    with pytest.raises(TokenVoteError):
        board.start()
    await board.close()


@pytest.mark.asyncio
async def test_refresh_catalog_rejoins_latest_tallies() -> None:
    store = MemoryTallyStore()
    store.seed("B", likes=2)
    catalog = FakeCatalog([{"address": "A", "name": "Foo"}])

    async with VoteBoard(catalog, store) as board:
        await board.wait_until_ready(1.0)
        assert _rows(board) == [("A", "Foo", 0, 0)]

        catalog.entries.append(CatalogEntry(address="B", name="Bar"))
        await board.refresh_catalog()

        assert _rows(board) == [("B", "Bar", 2, 0), ("A", "Foo", 0, 0)]
        assert catalog.calls == 2
