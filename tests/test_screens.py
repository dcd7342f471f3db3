import datetime as dt

import pytest

from cafe.app.admin import (
    CollectionConsole,
    ReviewFilter,
    dashboard_counts,
    filter_faqs,
    filter_reviews,
    home_listing,
    reservation_stats,
    search_messages,
    search_orders,
    set_reservation_status,
    toggle_offer_status,
)
from cafe.app.domain.records import (
    Faq,
    Message,
    Offer,
    Order,
    OrderItem,
    Product,
    Reservation,
    Review,
)
from cafe.app.domain.reservation_status import OfferStatus, ReservationStatus
from cafe.app.errors import InvalidTransition
from tests._store_helpers import at, products, seed

TODAY = dt.date(2024, 6, 1)


def _reservation(name, day=TODAY, status=ReservationStatus.PENDING, hour=19):
    return Reservation(name=name, date=day, time=dt.time(hour), guests=2, status=status)


@pytest.mark.anyio
async def test_toggle_offer_status_round_trip(flaky):
    [offer_id] = await seed(flaky.inner, [Offer(title="happy hour", discount_percentage=20)])
    console = CollectionConsole(flaky, "offers")

    offer = await toggle_offer_status(console, offer_id)
    assert offer.status is OfferStatus.ACTIVE
    assert (await flaky.get("offers", offer_id))["status"] == "active"

    offer = await toggle_offer_status(console, offer_id)
    assert offer.status is OfferStatus.INACTIVE


@pytest.mark.anyio
async def test_reservation_workflow(flaky):
    [booking_id] = await seed(flaky.inner, [_reservation("Ana")])
    console = CollectionConsole(flaky, "reservations")

    confirmed = await set_reservation_status(console, booking_id, ReservationStatus.CONFIRMED)
    assert confirmed.status is ReservationStatus.CONFIRMED

    with pytest.raises(InvalidTransition):
        await set_reservation_status(console, booking_id, ReservationStatus.PENDING)
    assert console.paginator.get(booking_id).status is ReservationStatus.CONFIRMED
    assert [w[0] for w in flaky.writes] == ["update"]


@pytest.mark.anyio
async def test_reservation_stats(redis_store):
    await seed(
        redis_store,
        [
            _reservation("Ana"),
            _reservation("Ben", status=ReservationStatus.CONFIRMED, hour=20),
            _reservation("Cy", day=TODAY + dt.timedelta(days=1)),
            _reservation("Di", status=ReservationStatus.CANCELLED, hour=21),
        ],
    )
    stats = await reservation_stats(redis_store, today=TODAY)
    assert stats == {
        "total": 4,
        "by_status": {"pending": 2, "confirmed": 1, "cancelled": 1},
        "today": 3,
    }


@pytest.mark.anyio
async def test_filter_reviews(redis_store):
    await seed(
        redis_store,
        [
            Review(name="a", rating=5, featured=True, created_at=at(1)),
            Review(name="b", rating=4, created_at=at(2)),
            Review(name="c", rating=3, created_at=at(3)),
        ],
    )
    featured = await filter_reviews(redis_store, ReviewFilter.FEATURED)
    plain = await filter_reviews(redis_store, ReviewFilter.NOT_FEATURED)
    everything = await filter_reviews(redis_store)
    assert [r.name for r in featured] == ["a"]
    assert [r.name for r in plain] == ["c", "b"]
    assert [r.name for r in everything] == ["c", "b", "a"]


@pytest.mark.anyio
async def test_search_messages(redis_store):
    await seed(
        redis_store,
        [
            Message(name="Lena", message="Do you have oat milk?", category="menu", created_at=at(1)),
            Message(name="Omar", message="Great service", category="feedback", created_at=at(2)),
            Message(name="Milo", message="Parking?", created_at=at(3)),
        ],
    )
    assert [m.name for m in await search_messages(redis_store, "MILK")] == ["Lena"]
    assert [m.name for m in await search_messages(redis_store, "feedback")] == ["Omar"]
    assert [m.name for m in await search_messages(redis_store, "mil")] == ["Milo", "Lena"]
    assert len(await search_messages(redis_store, "  ")) == 3


@pytest.mark.anyio
async def test_console_adopts_records_outside_loaded_pages(flaky):
    [message_id] = await seed(flaky.inner, [Message(name="x", message="hello")])
    console = CollectionConsole(flaky, "messages")
    assert console.paginator.items == ()

    record = await console.ensure_loaded(message_id)
    assert console.paginator.get(message_id) == record
    await console.coordinator.delete(message_id)
    assert console.paginator.items == ()


@pytest.mark.anyio
async def test_adopted_record_keeps_page_order(flaky):
    ids = await seed(flaky.inner, products(12))
    console = CollectionConsole(flaky, "products", page_size=5)
    await console.paginator.load_first_page()

    await console.ensure_loaded(ids[0])
    await console.paginator.load_next_page()
    items = console.paginator.items
    assert items == tuple(sorted(items, key=lambda record: record.sort_key()))
    assert items[-1].id == ids[0]

    await console.paginator.load_next_page()
    names = [record.name for record in console.paginator.items]
    assert names == [f"item {i:02d}" for i in range(11, -1, -1)]


def test_order_total_follows_items():
    order = Order(
        customer_name="Sara",
        items=[
            OrderItem(product_id="p1", name="latte", price=3.5, quantity=2),
            {"product_id": "p2", "name": "cake", "price": 4.25},
        ],
        total=999,
    )
    assert order.total == 11.25
    assert order.fields()["total"] == 11.25


@pytest.mark.anyio
async def test_search_orders_by_customer(redis_store):
    await seed(
        redis_store,
        [
            Order(customer_name="Sara Ali", created_at=at(1)),
            Order(customer_name="Omar", created_at=at(2)),
            Order(customer_name="sarah", created_at=at(3)),
        ],
    )
    assert [o.customer_name for o in await search_orders(redis_store, "SAR")] == ["sarah", "Sara Ali"]
    assert len(await search_orders(redis_store, "")) == 3


@pytest.mark.anyio
async def test_filter_faqs(redis_store):
    await seed(
        redis_store,
        [
            Faq(question="Wifi?", answer="Yes", category="services", created_at=at(1)),
            Faq(question="Vegan?", answer="Some", created_at=at(2)),
            Faq(question="Old?", answer="No", active=False, created_at=at(3)),
        ],
    )
    assert [f.question for f in await filter_faqs(redis_store, active=True)] == ["Vegan?", "Wifi?"]
    assert [f.question for f in await filter_faqs(redis_store, active=False)] == ["Old?"]
    assert [f.question for f in await filter_faqs(redis_store, category="services")] == ["Wifi?"]
    assert len(await filter_faqs(redis_store)) == 3


@pytest.mark.anyio
async def test_dashboard_counts(redis_store):
    await seed(redis_store, products(3) + [Order(customer_name="x"), Message(name="m")])
    assert await dashboard_counts(redis_store) == {"products": 3, "orders": 1, "messages": 1}


@pytest.mark.anyio
async def test_home_listing_shows_featured_and_active(redis_store):
    await seed(
        redis_store,
        [
            Product(name="hidden", created_at=at(1)),
            Product(name="star a", featured=True, created_at=at(2)),
            Product(name="star b", featured=True, created_at=at(3)),
            Offer(title="on", status="active", created_at=at(4)),
            Offer(title="off", created_at=at(5)),
            Review(name="fan", featured=True, created_at=at(6)),
        ],
    )
    listing = await home_listing(redis_store, {"products": 1, "reviews": 3})
    assert [p.name for p in listing["products"]] == ["star b"]
    assert [o.title for o in listing["offers"]] == ["on"]
    assert [r.name for r in listing["reviews"]] == ["fan"]
