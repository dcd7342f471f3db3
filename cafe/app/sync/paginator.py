"""Incremental, ordered loading of one collection.

The paginator owns the accumulated list the console renders. Pages arrive in
``created_at`` desc, ``id`` asc order; records created by this client are
prepended locally and never re-fetched. Records created elsewhere show up only
after :meth:`CursorPaginator.load_first_page` runs again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..domain.records import Record, normalize
from ..errors import ExhaustedCursor
from ..repos.remote_store import PageCursor, RemoteStore

logger = logging.getLogger("cafe.sync")


@dataclass(frozen=True)
class Page:
    items: tuple[Record, ...]
    cursor: PageCursor


class CursorPaginator:
    """Accumulates pages of ``collection`` behind an opaque cursor."""

    def __init__(self, store: RemoteStore, collection: str, page_size: int = 5) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.store = store
        self.collection = collection
        self.page_size = page_size
        self._items: list[Record] = []
        self._cursor: Optional[PageCursor] = None
        self._generation = 0

    @property
    def items(self) -> tuple[Record, ...]:
        return tuple(self._items)

    @property
    def cursor(self) -> Optional[PageCursor]:
        return self._cursor

    @property
    def exhausted(self) -> bool:
        return self._cursor is not None and self._cursor.exhausted

    def _size(self, page_size: Optional[int]) -> int:
        size = page_size or self.page_size
        if size < 1:
            raise ValueError("page_size must be positive")
        return size

    async def load_first_page(self, page_size: Optional[int] = None) -> Page:
        """Fetch the newest page and replace the accumulated list with it."""
        size = self._size(page_size)
        self._generation += 1
        generation = self._generation
        docs, cursor = await self.store.query_page(self.collection, size)
        records = [normalize(self.collection, doc) for doc in docs]
        if generation != self._generation:
            logger.info("discarding stale first page of %s", self.collection)
            return Page((), cursor)
        self._items = records
        self._cursor = cursor
        logger.info(
            "loaded first page of %s: %d items, exhausted=%s",
            self.collection,
            len(records),
            cursor.exhausted,
        )
        return Page(tuple(records), cursor)

    async def load_next_page(
        self, cursor: Optional[PageCursor] = None, page_size: Optional[int] = None
    ) -> Page:
        """Fetch the page after ``cursor`` (default: the current one) and append it.

        Raises :class:`ExhaustedCursor` once a short page has been seen.
        """
        if cursor is None:
            cursor = self._cursor
        if cursor is None:
            return await self.load_first_page(page_size)
        if cursor.exhausted:
            raise ExhaustedCursor(f"{self.collection}: no more pages")
        size = self._size(page_size)
        generation = self._generation
        docs, next_cursor = await self.store.query_page(self.collection, size, after=cursor)
        records = [normalize(self.collection, doc) for doc in docs]
        if generation != self._generation:
            # A reload or reset happened while this page was in flight.
            logger.info("discarding stale page of %s", self.collection)
            return Page((), self._cursor or next_cursor)
        seen = {record.id for record in self._items}
        fresh = [record for record in records if record.id not in seen]
        # Records adopted out of order may already sit past this page.
        for record in fresh:
            self.insert_ordered(record)
        self._cursor = next_cursor
        logger.info(
            "loaded next page of %s: %d items, exhausted=%s",
            self.collection,
            len(fresh),
            next_cursor.exhausted,
        )
        return Page(tuple(fresh), next_cursor)

    def reset(self) -> None:
        """Forget loaded pages, e.g. after a filter change."""
        self._generation += 1
        self._items = []
        self._cursor = None

    # Buffer operations below are used by the mutation coordinator only.

    def get(self, entity_id: str) -> Optional[Record]:
        for record in self._items:
            if record.id == entity_id:
                return record
        return None

    def index_of(self, entity_id: str) -> Optional[int]:
        for index, record in enumerate(self._items):
            if record.id == entity_id:
                return index
        return None

    def prepend_local(self, record: Record) -> None:
        self._items.insert(0, record)

    def replace(self, entity_id: str, record: Record) -> bool:
        index = self.index_of(entity_id)
        if index is None:
            return False
        self._items[index] = record
        return True

    def remove(self, entity_id: str) -> Optional[Record]:
        index = self.index_of(entity_id)
        if index is None:
            return None
        return self._items.pop(index)

    def insert_ordered(self, record: Record) -> int:
        """Insert ``record`` at its ``created_at`` position and return the index."""
        key = record.sort_key()
        for index, current in enumerate(self._items):
            if current.sort_key() > key:
                self._items.insert(index, record)
                return index
        self._items.append(record)
        return len(self._items) - 1

    def replace_id(self, old_id: str, new_id: str) -> Optional[Record]:
        index = self.index_of(old_id)
        if index is None:
            return None
        record = self._items[index].model_copy(update={"id": new_id})
        self._items[index] = record
        return record
