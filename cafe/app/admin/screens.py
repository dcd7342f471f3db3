"""Screen-specific actions of the admin console.

Status changes go through the coordinator like any other edit; the listings
below read the store directly because they span more than the loaded pages.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections import Counter
from enum import Enum
from typing import Optional

from ..domain.records import (
    Faq,
    Message,
    Offer,
    Order,
    Product,
    Record,
    Reservation,
    Review,
    evolve,
    normalize,
)
from ..domain.reservation_status import OfferStatus, ReservationStatus, can_transition
from ..errors import InvalidTransition, MalformedRecord
from ..repos.remote_store import RemoteStore
from .console import CollectionConsole

logger = logging.getLogger("cafe.sync")


class ReviewFilter(str, Enum):
    ALL = "all"
    FEATURED = "featured"
    NOT_FEATURED = "none"


async def toggle_offer_status(console: CollectionConsole, offer_id: str) -> Offer:
    """Flip an offer between ``active`` and ``inactive``."""
    await console.ensure_loaded(offer_id)
    return await console.coordinator.mutate(
        offer_id,
        lambda current: evolve(current, status=current.status.toggled()),
        console.coordinator.commit_update,
    )


async def set_reservation_status(
    console: CollectionConsole, reservation_id: str, status: ReservationStatus
) -> Reservation:
    """Move a reservation along its lifecycle.

    Raises :class:`InvalidTransition` when ``status`` is not reachable from
    the current one; nothing is written in that case.
    """
    await console.ensure_loaded(reservation_id)

    def transform(current: Optional[Record]) -> Record:
        if not can_transition(current.status, status):
            raise InvalidTransition(current.status, status)
        return evolve(current, status=status)

    return await console.coordinator.mutate(
        reservation_id, transform, console.coordinator.commit_update
    )


async def _load_all(store: RemoteStore, collection: str, **fields) -> list[Record]:
    records = []
    for doc in await store.query_exact(collection, **fields):
        try:
            records.append(normalize(collection, doc))
        except MalformedRecord as exc:
            logger.warning("skipping malformed record: %s", exc)
    records.sort(key=lambda record: record.sort_key())
    return records


async def reservation_stats(store: RemoteStore, today: Optional[dt.date] = None) -> dict:
    """Count reservations in total, per status and for ``today``."""
    today = today or dt.date.today()
    records = await _load_all(store, Reservation.collection)
    by_status = Counter(record.status.value for record in records)
    return {
        "total": len(records),
        "by_status": {status.value: by_status.get(status.value, 0) for status in ReservationStatus},
        "today": sum(1 for record in records if record.date == today),
    }


async def filter_reviews(store: RemoteStore, mode: ReviewFilter = ReviewFilter.ALL) -> list[Review]:
    if mode is ReviewFilter.FEATURED:
        return await _load_all(store, Review.collection, featured=True)
    if mode is ReviewFilter.NOT_FEATURED:
        return await _load_all(store, Review.collection, featured=False)
    return await _load_all(store, Review.collection)


async def search_messages(store: RemoteStore, term: str) -> list[Message]:
    """Case-insensitive match of ``term`` on name, message or category."""
    needle = term.strip().lower()
    records = await _load_all(store, Message.collection)
    if not needle:
        return records
    return [
        record
        for record in records
        if needle in record.name.lower()
        or needle in record.message.lower()
        or needle in record.category.lower()
    ]


async def search_orders(store: RemoteStore, term: str) -> list[Order]:
    needle = term.strip().lower()
    records = await _load_all(store, Order.collection)
    return [record for record in records if needle in record.customer_name.lower()]


async def filter_faqs(
    store: RemoteStore, active: Optional[bool] = None, category: Optional[str] = None
) -> list[Faq]:
    """FAQs narrowed by ``active`` and ``category``; ``None`` means any."""
    fields = {}
    if active is not None:
        fields["active"] = active
    if category:
        fields["category"] = category
    return await _load_all(store, Faq.collection, **fields)


async def dashboard_counts(store: RemoteStore) -> dict:
    """Document counts shown on the dashboard landing page."""
    counts = {}
    for collection in (Product.collection, Order.collection, Message.collection):
        counts[collection] = len(await store.query_exact(collection))
    return counts


async def home_listing(store: RemoteStore, featured_limits: dict[str, int]) -> dict:
    """What the public home page shows: featured products and reviews, active offers.

    Featured lists are cut at the collection's limit, newest first, so the
    page stays within it even if two consoles raced past the cap.
    """

    async def featured(collection: str) -> list[Record]:
        records = await _load_all(store, collection, featured=True)
        limit = featured_limits.get(collection)
        return records if limit is None else records[:limit]

    return {
        "products": await featured(Product.collection),
        "offers": await _load_all(store, Offer.collection, status=OfferStatus.ACTIVE.value),
        "reviews": await featured(Review.collection),
    }
