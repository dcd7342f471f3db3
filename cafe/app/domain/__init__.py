"""Domain schemas and status tables for the cafe console."""

from .records import (
    SCHEMAS,
    Category,
    Message,
    Offer,
    Product,
    Record,
    Reservation,
    Review,
    evolve,
    normalize,
    schema_for,
    supports_featured,
)
from .reservation_status import OfferStatus, ReservationStatus, can_transition

__all__ = [
    "SCHEMAS",
    "Category",
    "Message",
    "Offer",
    "OfferStatus",
    "Product",
    "Record",
    "Reservation",
    "ReservationStatus",
    "Review",
    "can_transition",
    "evolve",
    "normalize",
    "schema_for",
    "supports_featured",
]
