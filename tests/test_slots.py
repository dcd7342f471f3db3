import asyncio
import datetime as dt

import pytest

from cafe.app.domain.records import Reservation
from cafe.app.domain.reservation_status import ReservationStatus
from cafe.app.errors import InvalidTransition, SlotConflict, SlotUnknown, UpdateRejected
from cafe.app.sync import CursorPaginator, OptimisticMutationCoordinator, SlotAvailabilityGuard, SlotState
from tests._store_helpers import seed

DAY = dt.date(2024, 6, 1)
EVENING = dt.time(19, 0)


def _booking(name="Ana", **overrides):
    fields = {"name": name, "phone": "555", "date": DAY, "time": EVENING, "guests": 2}
    fields.update(overrides)
    return Reservation(**fields)


def _guard(store):
    paginator = CursorPaginator(store, "reservations")
    return SlotAvailabilityGuard(OptimisticMutationCoordinator(store, paginator))


@pytest.mark.anyio
async def test_free_slot_is_available_and_booked(flaky):
    guard = _guard(flaky)
    assert await guard.check_availability(DAY, EVENING) is SlotState.AVAILABLE

    created = await guard.book(_booking())
    assert not created.id.startswith("local-")
    stored = await flaky.get("reservations", created.id)
    assert stored["date"] == "2024-06-01"
    assert stored["time"] == "19:00:00"


@pytest.mark.anyio
async def test_existing_reservation_is_a_conflict_for_other_clients(flaky):
    await seed(flaky.inner, [_booking("Ben")])
    guard = _guard(flaky)

    assert await guard.check_availability(DAY, EVENING) is SlotState.CONFLICT
    with pytest.raises(SlotConflict):
        await guard.book(_booking())
    assert flaky.writes == []


@pytest.mark.anyio
async def test_cancelled_reservation_frees_the_slot(flaky):
    await seed(flaky.inner, [_booking("Ben", status=ReservationStatus.CANCELLED)])
    guard = _guard(flaky)
    assert await guard.check_availability(DAY, EVENING) is SlotState.AVAILABLE


@pytest.mark.anyio
async def test_other_slots_do_not_conflict(flaky):
    await seed(flaky.inner, [_booking("Ben", time=dt.time(20, 0))])
    guard = _guard(flaky)
    assert await guard.check_availability(DAY, EVENING) is SlotState.AVAILABLE


@pytest.mark.anyio
async def test_store_failure_reports_unknown_and_blocks_booking(flaky):
    guard = _guard(flaky)
    flaky.fail_reads = True

    assert await guard.check_availability(DAY, EVENING) is SlotState.UNKNOWN
    with pytest.raises(SlotUnknown):
        await guard.book(_booking())
    assert flaky.writes == []


@pytest.mark.anyio
async def test_second_attempt_sees_a_pending_booking(flaky):
    guard = _guard(flaky)
    gate = flaky.hold("Ana")
    first = asyncio.create_task(guard.book(_booking("Ana")))
    await asyncio.sleep(0.01)

    second = await guard.begin(DAY, EVENING)
    assert second.state is SlotState.CONFLICT

    gate.set()
    await first


@pytest.mark.anyio
async def test_attempt_history_follows_the_state_machine(flaky):
    guard = _guard(flaky)
    attempt = await guard.begin(DAY, EVENING)
    await guard.commit_reservation(attempt, _booking())
    assert attempt.history == [
        SlotState.CHECKING,
        SlotState.AVAILABLE,
        SlotState.COMMITTING,
        SlotState.COMMITTED,
    ]


@pytest.mark.anyio
async def test_rejected_create_marks_attempt_failed(flaky):
    guard = _guard(flaky)
    attempt = await guard.begin(DAY, EVENING)
    flaky.fail_writes = True

    with pytest.raises(UpdateRejected):
        await guard.commit_reservation(attempt, _booking())
    assert attempt.state is SlotState.FAILED
    assert guard.coordinator.view.items == ()


@pytest.mark.anyio
async def test_commit_requires_an_available_slot(flaky):
    await seed(flaky.inner, [_booking("Ben")])
    guard = _guard(flaky)
    attempt = await guard.begin(DAY, EVENING)

    with pytest.raises(InvalidTransition):
        await guard.commit_reservation(attempt, _booking())
    assert flaky.writes == []
