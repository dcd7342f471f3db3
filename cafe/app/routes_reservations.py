"""Public reservation routes guarded against double booking."""

from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from .admin import AdminConsole
from .domain.records import Reservation
from .routes_admin import get_console
from .utils.responses import ok

router = APIRouter()


class ReservationIn(BaseModel):
    """Booking request submitted by a guest."""

    name: str = Field(..., min_length=1)
    phone: str = ""
    date: dt.date
    time: dt.time
    guests: int = Field(1, ge=1)
    notes: str = ""


@router.get("/api/reservations/availability")
async def get_availability(
    date: dt.date,
    time: dt.time,
    console: AdminConsole = Depends(get_console),
) -> dict:
    """Report whether a slot is ``available``, in ``conflict`` or ``unknown``."""

    state = await console.slots.check_availability(date, time)
    return ok({"date": date.isoformat(), "time": time.isoformat(), "state": state.value})


@router.post("/api/reservations", status_code=201)
async def create_reservation(
    payload: ReservationIn,
    console: AdminConsole = Depends(get_console),
) -> dict:
    """Book a slot if no other reservation holds it.

    Answers 409 when the slot is taken and 503 when it could not be checked.
    """

    reservation = await console.slots.book(Reservation(**payload.model_dump()))
    return ok(reservation.model_dump(mode="json"))
