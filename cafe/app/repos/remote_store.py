"""Repository interface for the remote document store."""

from __future__ import annotations

import base64
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

Document = dict[str, Any]


@dataclass(frozen=True)
class PageCursor:
    """Opaque position in a collection ordered by ``created_at`` desc, ``id`` asc.

    A cursor without a position points before the first document. An
    exhausted cursor means the previous page came back short.
    """

    created_at_us: int | None = None
    last_id: str | None = None
    exhausted: bool = False

    @classmethod
    def after(cls, created_at_us: int, last_id: str) -> "PageCursor":
        return cls(created_at_us=created_at_us, last_id=last_id)

    @property
    def positioned(self) -> bool:
        return self.last_id is not None

    def token(self) -> str:
        raw = json.dumps([self.created_at_us, self.last_id, self.exhausted])
        return base64.urlsafe_b64encode(raw.encode()).decode().rstrip("=")

    @classmethod
    def from_token(cls, token: str) -> "PageCursor":
        padded = token + "=" * (-len(token) % 4)
        try:
            created_at_us, last_id, exhausted = json.loads(base64.urlsafe_b64decode(padded))
        except (ValueError, TypeError) as exc:
            raise ValueError("invalid cursor token") from exc
        if (created_at_us is None) != (last_id is None):
            raise ValueError("invalid cursor token")
        return cls(created_at_us=created_at_us, last_id=last_id, exhausted=bool(exhausted))


EXHAUSTED = PageCursor(exhausted=True)


class RemoteStore(ABC):
    """Contract for per-document CRUD and cursor-paged range queries.

    Implementations offer no compare-and-swap and no multi-document
    transactions. Reads raise ``ReadFailed``, writes raise ``WriteRejected``
    and lookups of missing ids raise ``NotFound``.
    """

    @abstractmethod
    async def get(self, collection: str, entity_id: str) -> Document:
        """Return the document stored under ``entity_id``."""
        raise NotImplementedError

    @abstractmethod
    async def query_page(
        self, collection: str, page_size: int, after: PageCursor | None = None
    ) -> tuple[list[Document], PageCursor]:
        """Return up to ``page_size`` documents strictly after ``after``."""
        raise NotImplementedError

    @abstractmethod
    async def query_exact(self, collection: str, **fields: Any) -> list[Document]:
        """Return documents whose fields equal every given value."""
        raise NotImplementedError

    @abstractmethod
    async def create(self, collection: str, fields: Document) -> str:
        """Store a new document and return its assigned id."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, collection: str, entity_id: str, fields: Document) -> None:
        """Merge ``fields`` into an existing document."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, collection: str, entity_id: str) -> None:
        """Remove a document."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the adapter."""


def next_cursor(page: list[tuple[int, Document]], page_size: int) -> PageCursor:
    """Cursor following ``page``, given as ``(created_at_us, doc)`` pairs."""
    if len(page) < page_size:
        return EXHAUSTED
    created_at_us, doc = page[-1]
    return PageCursor.after(created_at_us, doc["id"])


def is_after(cursor: PageCursor | None, created_at_us: int, entity_id: str) -> bool:
    """Return ``True`` if a document sorts strictly after ``cursor``."""
    if cursor is None or not cursor.positioned:
        return True
    if created_at_us != cursor.created_at_us:
        return created_at_us < cursor.created_at_us
    return entity_id > cursor.last_id


def matches(doc: Document, fields: dict[str, Any]) -> bool:
    return all(doc.get(key) == value for key, value in fields.items())
