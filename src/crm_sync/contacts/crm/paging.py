"""Cursor-driven paging shared by every store adapter.

A PagedIterator wraps a single "fetch one page from this cursor" coroutine
and turns it into a lazy, finite, restartable async sequence of pages:

- lazy: nothing is fetched until iteration starts
- finite: iteration stops when the store reports no next cursor, when a
  page comes back empty, or when the item/page caps are reached
- restartable: every ``async for`` starts again from the initial cursor

Both "fetch everything" (``collect``) and "fetch one page" (``first``)
callers go through the same object, so cursor handling lives in one place.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")
C = TypeVar("C")


@dataclass
class Page(Generic[T, C]):
    """Items from one upstream call plus the cursor for the next call."""

    items: list[T] = field(default_factory=list)
    next_cursor: C | None = None
    total: int | None = None


@dataclass
class CollectedPages(Generic[T, C]):
    """Result of draining a PagedIterator.

    ``next_cursor`` is None when the upstream sequence was exhausted, and
    the resume point when a cap stopped the iteration early.
    """

    items: list[T] = field(default_factory=list)
    next_cursor: C | None = None
    pages: int = 0
    total: int | None = None

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


FetchPage = Callable[[C | None, int], Awaitable[Page[T, C]]]


class PagedIterator(Generic[T, C]):
    """Lazy, finite, restartable async sequence of pages.

    Args:
        fetch_page: Coroutine ``(cursor, size) -> Page`` performing one call.
        page_size: Largest page to request from the store.
        start: Initial cursor (None for the beginning).
        max_items: Stop once this many items were yielded. The last request
            is shrunk so no fetched item is discarded.
        max_pages: Safety cap on the number of upstream calls.
        name: Label used in log events.
    """

    def __init__(
        self,
        fetch_page: FetchPage[T, C],
        *,
        page_size: int,
        start: C | None = None,
        max_items: int | None = None,
        max_pages: int | None = None,
        name: str = "pages",
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._fetch_page = fetch_page
        self._page_size = page_size
        self._start = start
        self._max_items = max_items
        self._max_pages = max_pages
        self._name = name

    def __aiter__(self) -> AsyncIterator[Page[T, C]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Page[T, C]]:
        cursor = self._start
        fetched_pages = 0
        fetched_items = 0

        while True:
            if self._max_pages is not None and fetched_pages >= self._max_pages:
                logger.warning(
                    "paging.max_pages_reached",
                    name=self._name,
                    pages=fetched_pages,
                )
                return

            size = self._page_size
            if self._max_items is not None:
                size = min(size, self._max_items - fetched_items)
                if size <= 0:
                    return

            page = await self._fetch_page(cursor, size)
            fetched_pages += 1
            fetched_items += len(page.items)

            yield page

            if page.next_cursor is None or not page.items:
                return
            cursor = page.next_cursor

    async def first(self) -> Page[T, C]:
        """Fetch only the first page."""
        async for page in self:
            return page
        return Page()

    async def collect(self) -> CollectedPages[T, C]:
        """Drain the iterator into a single list of items."""
        result: CollectedPages[T, C] = CollectedPages()

        async for page in self:
            result.items.extend(page.items)
            result.pages += 1
            result.next_cursor = page.next_cursor if page.items else None
            if result.total is None:
                result.total = page.total

        logger.debug(
            "paging.collected",
            name=self._name,
            pages=result.pages,
            items=len(result.items),
            has_more=result.has_more,
        )
        return result
