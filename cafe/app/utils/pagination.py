from __future__ import annotations

"""Reusable helpers for cursor-based pagination parameters."""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Query

from config import get_settings

from ..repos.remote_store import PageCursor


@dataclass
class Pagination:
    """Sanitised page request."""

    limit: int
    cursor: Optional[PageCursor] = None


def pagination(
    limit: Optional[int] = Query(None, ge=1), cursor: Optional[str] = Query(None)
) -> Pagination:
    """Return sanitised pagination parameters.

    ``limit`` defaults to the configured page size and is capped at
    ``max_page_size``; ``cursor`` is an opaque token from a previous page.
    """

    settings = get_settings()
    size = min(limit or settings.page_size, settings.max_page_size)
    decoded = None
    if cursor:
        try:
            decoded = PageCursor.from_token(cursor)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail={"code": "BAD_CURSOR", "message": "invalid cursor token"},
            ) from None
    return Pagination(limit=size, cursor=decoded)
