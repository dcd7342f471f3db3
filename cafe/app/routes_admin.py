"""Admin console routes.

Every collection shares the same listing and CRUD endpoints; the screen
actions (offer status, reservation workflow, review filter, message search,
reservation statistics) sit next to them. Mutations are applied to the
console's visible list first and rolled back if the store rejects them.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel

from .admin import (
    AdminConsole,
    ReviewFilter,
    dashboard_counts,
    filter_faqs,
    filter_reviews,
    reservation_stats,
    search_messages,
    search_orders,
    set_reservation_status,
    toggle_offer_status,
)
from .domain.records import Record
from .domain.reservation_status import ReservationStatus
from .utils.pagination import Pagination, pagination
from .utils.responses import ok, ok_page

router = APIRouter()

IMMUTABLE_FIELDS = ("id", "created_at")


class FeaturedToggle(BaseModel):
    """Payload for setting the featured flag."""

    featured: bool


class StatusChange(BaseModel):
    """Payload for moving a reservation to another status."""

    status: ReservationStatus


def get_console(request: Request) -> AdminConsole:
    return request.app.state.console


def _dump(record: Record) -> dict:
    return record.model_dump(mode="json")


def _page(result) -> dict:
    token = None if result.cursor.exhausted else result.cursor.token()
    return ok_page((_dump(record) for record in result.items), token)


@router.get("/api/admin/dashboard")
async def get_dashboard(console: AdminConsole = Depends(get_console)) -> dict:
    """Counts of products, orders and messages."""

    return ok(await dashboard_counts(console.store))


@router.get("/api/admin/reservations/stats")
async def get_reservation_stats(console: AdminConsole = Depends(get_console)) -> dict:
    """Return reservation counts in total, per status and for today."""

    return ok(await reservation_stats(console.store))


@router.get("/api/admin/reviews/filter")
async def get_filtered_reviews(
    mode: ReviewFilter = ReviewFilter.ALL,
    console: AdminConsole = Depends(get_console),
) -> dict:
    reviews = await filter_reviews(console.store, mode)
    return ok([_dump(review) for review in reviews])


@router.get("/api/admin/messages/search")
async def get_message_search(
    q: str = "",
    console: AdminConsole = Depends(get_console),
) -> dict:
    messages = await search_messages(console.store, q)
    return ok([_dump(message) for message in messages])


@router.get("/api/admin/orders/search")
async def get_order_search(
    q: str = "",
    console: AdminConsole = Depends(get_console),
) -> dict:
    orders = await search_orders(console.store, q)
    return ok([_dump(order) for order in orders])


@router.get("/api/admin/faqs/filter")
async def get_filtered_faqs(
    active: Optional[bool] = None,
    category: Optional[str] = None,
    console: AdminConsole = Depends(get_console),
) -> dict:
    faqs = await filter_faqs(console.store, active, category)
    return ok([_dump(faq) for faq in faqs])


@router.post("/api/admin/offers/{offer_id}/toggle-status")
async def post_offer_toggle(offer_id: str, console: AdminConsole = Depends(get_console)) -> dict:
    """Flip an offer between active and inactive."""

    offer = await toggle_offer_status(console["offers"], offer_id)
    return ok(_dump(offer))


@router.post("/api/admin/reservations/{reservation_id}/status")
async def post_reservation_status(
    reservation_id: str,
    payload: StatusChange,
    console: AdminConsole = Depends(get_console),
) -> dict:
    reservation = await set_reservation_status(
        console["reservations"], reservation_id, payload.status
    )
    return ok(_dump(reservation))


@router.get("/api/admin/{collection}")
async def list_first_page(
    collection: str,
    page: Pagination = Depends(pagination),
    console: AdminConsole = Depends(get_console),
) -> dict:
    """Reload the newest page of ``collection``, replacing the visible list."""

    result = await console[collection].paginator.load_first_page(page.limit)
    return _page(result)


@router.get("/api/admin/{collection}/more")
async def list_next_page(
    collection: str,
    page: Pagination = Depends(pagination),
    console: AdminConsole = Depends(get_console),
) -> dict:
    """Append the page after ``cursor`` (or after the last loaded one)."""

    result = await console[collection].paginator.load_next_page(page.cursor, page.limit)
    return _page(result)


@router.post("/api/admin/{collection}", status_code=201)
async def create_record(
    collection: str,
    payload: dict[str, Any] = Body(...),
    console: AdminConsole = Depends(get_console),
) -> dict:
    """Validate ``payload`` against the collection schema and create it."""

    fields = {k: v for k, v in payload.items() if k not in IMMUTABLE_FIELDS}
    created = await console.create(collection, fields)
    return ok(_dump(created))


@router.patch("/api/admin/{collection}/{entity_id}")
async def update_record(
    collection: str,
    entity_id: str,
    payload: dict[str, Any] = Body(...),
    console: AdminConsole = Depends(get_console),
) -> dict:
    updated = await console.update(collection, entity_id, payload)
    return ok(_dump(updated))


@router.delete("/api/admin/{collection}/{entity_id}")
async def delete_record(
    collection: str,
    entity_id: str,
    console: AdminConsole = Depends(get_console),
) -> dict:
    target = console[collection]
    await target.ensure_loaded(entity_id)
    await target.coordinator.delete(entity_id)
    return ok({"id": entity_id, "deleted": True})


@router.post("/api/admin/{collection}/{entity_id}/featured")
async def set_featured(
    collection: str,
    entity_id: str,
    payload: FeaturedToggle,
    console: AdminConsole = Depends(get_console),
) -> dict:
    """Set or clear the featured flag within the collection's limit."""

    record = await console[collection].set_featured(entity_id, payload.featured)
    return ok(_dump(record))
