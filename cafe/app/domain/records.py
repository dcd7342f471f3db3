"""Per-collection record schemas and the normalisation step at the store boundary.

Documents come back from the store as plain dictionaries. :func:`normalize`
turns them into one of the frozen schemas below or raises
:class:`~cafe.app.errors.MalformedRecord`; nothing untyped travels past it.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, field_validator, model_validator
from pydantic_core import to_jsonable_python

from ..errors import MalformedRecord
from .reservation_status import OfferStatus, OrderStatus, ReservationStatus

EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def to_micros(value: dt.datetime) -> int:
    """Return ``value`` as integer microseconds since the epoch."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return (value - EPOCH) // dt.timedelta(microseconds=1)


def from_micros(value: int) -> dt.datetime:
    return EPOCH + dt.timedelta(microseconds=int(value))


class Record(BaseModel):
    """Common shape of every stored document."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    collection: ClassVar[str] = ""

    id: str | None = None
    created_at: dt.datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: dt.datetime) -> dt.datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value.astimezone(dt.timezone.utc)

    def sort_key(self) -> tuple[int, str]:
        """Newest first, ties broken by ascending id."""
        return (-to_micros(self.created_at), self.id or "")

    def fields(self) -> dict[str, Any]:
        """Return the JSON-ready document body (everything but ``id``)."""
        return self.model_dump(mode="json", exclude={"id"})


class Product(Record):
    collection: ClassVar[str] = "products"

    name: str = Field(min_length=1)
    category: str = ""
    price: float = Field(0.0, ge=0)
    description: str = ""
    img: str = ""
    featured: bool = False


class Category(Record):
    collection: ClassVar[str] = "categories"

    name: str = Field(min_length=1)


class Offer(Record):
    collection: ClassVar[str] = "offers"

    title: str = Field(min_length=1)
    description: str = ""
    discount_percentage: float = Field(0.0, ge=0, le=100)
    start_date: dt.datetime | None = None
    end_date: dt.datetime | None = None
    status: OfferStatus = OfferStatus.INACTIVE
    featured: bool = False

    @model_validator(mode="after")
    def _window(self) -> "Offer":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class Review(Record):
    collection: ClassVar[str] = "reviews"

    name: str = ""
    rating: int = Field(5, ge=1, le=5)
    comment: str = ""
    featured: bool = False


class Message(Record):
    collection: ClassVar[str] = "messages"

    name: str = ""
    email: str = ""
    message: str = ""
    category: str = "general"


class Reservation(Record):
    collection: ClassVar[str] = "reservations"

    name: str = Field(min_length=1)
    phone: str = ""
    date: dt.date
    time: dt.time
    guests: int = Field(1, ge=1)
    status: ReservationStatus = ReservationStatus.PENDING
    notes: str = ""

    @property
    def slot(self) -> tuple[dt.date, dt.time]:
        return (self.date, self.time)

    def occupies_slot(self) -> bool:
        return self.status is not ReservationStatus.CANCELLED


class OrderItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    product_id: str = ""
    name: str = ""
    price: float = Field(0.0, ge=0)
    quantity: int = Field(1, ge=1)


class Order(Record):
    collection: ClassVar[str] = "orders"

    customer_name: str = Field(min_length=1)
    items: tuple[OrderItem, ...] = ()
    status: OrderStatus = OrderStatus.PENDING

    @computed_field
    @property
    def total(self) -> float:
        """Always derived from the line items; a stored total is ignored."""
        return round(sum(item.price * item.quantity for item in self.items), 2)


class Faq(Record):
    collection: ClassVar[str] = "faqs"

    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    category: str = "general"
    active: bool = True


SCHEMAS: dict[str, type[Record]] = {
    schema.collection: schema
    for schema in (Product, Category, Offer, Review, Message, Reservation, Order, Faq)
}


def schema_for(collection: str) -> type[Record]:
    try:
        return SCHEMAS[collection]
    except KeyError:
        raise LookupError(f"unknown collection {collection!r}") from None


def supports_featured(collection: str) -> bool:
    return "featured" in schema_for(collection).model_fields


def normalize(collection: str, doc: dict[str, Any]) -> Record:
    """Validate a raw store document against its collection schema."""
    entity_id = doc.get("id")
    if not entity_id:
        raise MalformedRecord(collection, None, "document has no id")
    if doc.get("created_at") is None:
        raise MalformedRecord(collection, entity_id, "document has no created_at")
    schema = schema_for(collection)
    try:
        return schema.model_validate(doc)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        raise MalformedRecord(collection, entity_id, f"{where}: {first['msg']}") from exc


def evolve(record: Record, **changes: Any) -> Record:
    """Return a validated copy of ``record`` with ``changes`` applied."""
    return type(record).model_validate({**record.model_dump(), **changes})


def to_document_value(value: Any) -> Any:
    """Encode a filter value the way it is stored in a document body."""
    return to_jsonable_python(value)
