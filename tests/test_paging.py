"""Unit tests for PagedIterator cursor handling."""

from __future__ import annotations

import pytest

from src.crm_sync.contacts.crm.paging import Page, PagedIterator


def _make_fetch(items: list[int], calls: list[tuple[int | None, int]]):
    """Offset-cursor fetcher over ``items`` that records every call."""

    async def fetch(cursor: int | None, size: int) -> Page[int, int]:
        calls.append((cursor, size))
        start = cursor or 0
        chunk = items[start:start + size]
        end = start + len(chunk)
        return Page(items=chunk, next_cursor=end if end < len(items) else None, total=len(items))

    return fetch


class TestPagedIterator:
    """Test laziness, termination, caps and restartability."""

    async def test_nothing_fetched_until_iterated(self):
        calls: list = []
        PagedIterator(_make_fetch(list(range(10)), calls), page_size=3)
        assert calls == []

    async def test_collects_all_pages(self):
        calls: list = []
        collected = await PagedIterator(_make_fetch(list(range(10)), calls), page_size=3).collect()

        assert collected.items == list(range(10))
        assert collected.pages == 4
        assert collected.total == 10
        assert collected.has_more is False
        assert calls == [(None, 3), (3, 3), (6, 3), (9, 3)]

    async def test_max_items_shrinks_last_request(self):
        calls: list = []
        collected = await PagedIterator(
            _make_fetch(list(range(10)), calls), page_size=4, max_items=6
        ).collect()

        assert collected.items == list(range(6))
        assert calls == [(None, 4), (4, 2)]
        assert collected.has_more is True
        assert collected.next_cursor == 6

    async def test_max_pages_cap(self):
        calls: list = []
        collected = await PagedIterator(
            _make_fetch(list(range(10)), calls), page_size=2, max_pages=2
        ).collect()

        assert collected.items == [0, 1, 2, 3]
        assert len(calls) == 2
        assert collected.has_more is True

    async def test_empty_page_stops_iteration(self):
        calls: list = []

        async def fetch(cursor, size):
            calls.append(cursor)
            return Page(items=[], next_cursor="again")

        collected = await PagedIterator(fetch, page_size=5).collect()
        assert collected.items == []
        assert collected.has_more is False
        assert calls == [None]

    async def test_start_cursor(self):
        calls: list = []
        collected = await PagedIterator(
            _make_fetch(list(range(10)), calls), page_size=5, start=7
        ).collect()
        assert collected.items == [7, 8, 9]

    async def test_restartable(self):
        calls: list = []
        pages = PagedIterator(_make_fetch(list(range(4)), calls), page_size=2)

        first_run = [page.items async for page in pages]
        second_run = [page.items async for page in pages]

        assert first_run == second_run == [[0, 1], [2, 3]]
        assert calls == [(None, 2), (2, 2), (None, 2), (2, 2)]

    async def test_first_fetches_one_page(self):
        calls: list = []
        page = await PagedIterator(_make_fetch(list(range(10)), calls), page_size=3).first()
        assert page.items == [0, 1, 2]
        assert page.next_cursor == 3
        assert len(calls) == 1

    async def test_errors_propagate(self):
        async def fetch(cursor, size):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await PagedIterator(fetch, page_size=1).collect()

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValueError):
            PagedIterator(_make_fetch([], []), page_size=0)
