"""Reservation, order and offer status enumerations with allowed transitions."""

from __future__ import annotations

from enum import Enum


class ReservationStatus(str, Enum):
    """Enumerate the lifecycle states for a reservation."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


TRANSITIONS: dict[ReservationStatus, list[ReservationStatus]] = {
    ReservationStatus.PENDING: [
        ReservationStatus.CONFIRMED,
        ReservationStatus.CANCELLED,
    ],
    ReservationStatus.CONFIRMED: [ReservationStatus.CANCELLED],
    ReservationStatus.CANCELLED: [],
}


def can_transition(src: ReservationStatus, dst: ReservationStatus) -> bool:
    """Return ``True`` if a reservation can move from ``src`` to ``dst``."""

    return dst in TRANSITIONS.get(src, [])


class OfferStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

    def toggled(self) -> "OfferStatus":
        if self is OfferStatus.ACTIVE:
            return OfferStatus.INACTIVE
        return OfferStatus.ACTIVE


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
