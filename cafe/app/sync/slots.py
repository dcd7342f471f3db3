"""Check-then-reserve guard for reservation slots.

The store has no "insert if slot free" primitive, so a booking first looks
for an existing non-cancelled reservation on the same ``(date, time)`` and
only then creates its own. Another client can still commit between the two
steps; that window is accepted and not re-verified after the create.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from enum import Enum

from ..domain.records import Reservation, normalize, to_document_value
from ..errors import InvalidTransition, MalformedRecord, SlotConflict, SlotUnknown, StoreError, UpdateRejected
from .coordinator import OptimisticMutationCoordinator

logger = logging.getLogger("cafe.sync")


class SlotState(str, Enum):
    """Enumerate the states of one booking attempt."""

    CHECKING = "checking"
    AVAILABLE = "available"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"
    COMMITTING = "committing"
    COMMITTED = "committed"
    FAILED = "failed"


TRANSITIONS: dict[SlotState, list[SlotState]] = {
    SlotState.CHECKING: [SlotState.AVAILABLE, SlotState.CONFLICT, SlotState.UNKNOWN],
    SlotState.AVAILABLE: [SlotState.COMMITTING],
    SlotState.COMMITTING: [SlotState.COMMITTED, SlotState.FAILED],
    SlotState.CONFLICT: [],
    SlotState.UNKNOWN: [],
    SlotState.COMMITTED: [],
    SlotState.FAILED: [],
}


@dataclass
class BookingAttempt:
    date: dt.date
    time: dt.time
    state: SlotState = SlotState.CHECKING
    history: list[SlotState] = field(default_factory=lambda: [SlotState.CHECKING])

    def advance(self, dst: SlotState) -> None:
        if dst not in TRANSITIONS[self.state]:
            raise InvalidTransition(self.state, dst)
        self.state = dst
        self.history.append(dst)


class SlotAvailabilityGuard:
    """Classifies a requested slot before a reservation is created."""

    def __init__(self, coordinator: OptimisticMutationCoordinator) -> None:
        if coordinator.collection != Reservation.collection:
            raise ValueError("slot guard needs the reservations coordinator")
        self.coordinator = coordinator
        self.store = coordinator.store

    def _held_locally(self, date: dt.date, time: dt.time) -> bool:
        # Includes creates still waiting on the store.
        return any(
            isinstance(record, Reservation)
            and record.slot == (date, time)
            and record.occupies_slot()
            for record in self.coordinator.view.items
        )

    async def check_availability(self, date: dt.date, time: dt.time) -> SlotState:
        """Return ``AVAILABLE``, ``CONFLICT`` or ``UNKNOWN`` for the slot.

        A store failure is never read as availability.
        """
        if self._held_locally(date, time):
            logger.info("slot %s %s held by a visible reservation", date, time)
            return SlotState.CONFLICT
        try:
            docs = await self.store.query_exact(
                Reservation.collection,
                date=to_document_value(date),
                time=to_document_value(time),
            )
            holders = [
                record
                for record in (normalize(Reservation.collection, doc) for doc in docs)
                if record.occupies_slot()
            ]
        except (StoreError, MalformedRecord) as exc:
            logger.warning("slot %s %s could not be checked: %s", date, time, exc)
            return SlotState.UNKNOWN
        if holders:
            logger.info("slot %s %s held by %s", date, time, holders[0].id)
            return SlotState.CONFLICT
        return SlotState.AVAILABLE

    async def begin(self, date: dt.date, time: dt.time) -> BookingAttempt:
        """Start an attempt and run its availability check."""
        attempt = BookingAttempt(date=date, time=time)
        attempt.advance(await self.check_availability(date, time))
        return attempt

    async def commit_reservation(
        self, attempt: BookingAttempt, reservation: Reservation
    ) -> Reservation:
        """Create ``reservation`` for an attempt that was found available."""
        if reservation.slot != (attempt.date, attempt.time):
            raise ValueError("reservation does not match the checked slot")
        attempt.advance(SlotState.COMMITTING)
        try:
            created = await self.coordinator.create(reservation)
        except UpdateRejected:
            attempt.advance(SlotState.FAILED)
            raise
        attempt.advance(SlotState.COMMITTED)
        logger.info(
            "booked %s %s as %s",
            attempt.date,
            attempt.time,
            created.id,
            extra={"collection": Reservation.collection, "entity": created.id},
        )
        return created

    async def book(self, reservation: Reservation) -> Reservation:
        """Check the slot and create the reservation when it is free.

        Raises :class:`SlotConflict` or :class:`SlotUnknown` without writing.
        """
        attempt = await self.begin(reservation.date, reservation.time)
        if attempt.state is SlotState.CONFLICT:
            raise SlotConflict(reservation.date, reservation.time)
        if attempt.state is SlotState.UNKNOWN:
            raise SlotUnknown(reservation.date, reservation.time)
        return await self.commit_reservation(attempt, reservation)
