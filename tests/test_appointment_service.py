"""Tests for booking, rescheduling and lifecycle operations."""

import asyncio
from datetime import UTC, datetime
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from petcare.core.exceptions import (
    ConflictException,
    InvalidStateException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from petcare.core.redis_client import CacheManager
from petcare.models.appointments import appointments
from petcare.schemas.appointments import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentStatus,
    BookingState,
    PaymentStatus,
)
from petcare.services.appointment_service import SLOT_TAKEN_MESSAGE, AppointmentService
from petcare.services.slot_service import SLOT_GENERATION_TTL
from tests.factories import at, create_pet, create_vet, fixed_clock, force_status


def booking(pet_id, vet_id, when, notes=None) -> AppointmentCreate:
    return AppointmentCreate(pet_id=pet_id, vet_id=vet_id, appointment_time=when, notes=notes)


@pytest.fixture
def service(db_session) -> AppointmentService:
    return AppointmentService(db_session, clock=fixed_clock)


@pytest.mark.asyncio
async def test_book_appointment(service, owner, vet, pet_id):
    appointment = await service.book_appointment(
        owner, booking(pet_id, vet.id, at(10), notes="Limping on left leg")
    )

    assert appointment.pet_id == pet_id
    assert appointment.vet_id == vet.id
    assert appointment.appointment_time == at(10)
    assert appointment.status == AppointmentStatus.PENDING
    assert appointment.payment_status == PaymentStatus.PENDING
    assert appointment.payment_reference is None
    assert appointment.notes == "Limping on left leg"
    assert appointment.booking_state == BookingState.AWAITING_PAYMENT


@pytest.mark.asyncio
async def test_book_normalizes_offset_to_utc(service, owner, vet, pet_id):
    ist = datetime.fromisoformat("2024-06-10T15:30:00+05:30")

    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, ist))

    assert appointment.appointment_time == at(10)
    assert appointment.appointment_time.tzinfo is not None


@pytest.mark.asyncio
async def test_book_rejects_past_instant(service, owner, vet, pet_id):
    with pytest.raises(ValidationException):
        await service.book_appointment(
            owner, booking(pet_id, vet.id, datetime(2024, 5, 31, 10, tzinfo=UTC))
        )

@pytest.mark.asyncio
async def test_stranger_with_past_instant_is_unauthorized(service, stranger, vet, pet_id):
    """Ownership is judged before the instant, so strangers learn nothing about it."""
    with pytest.raises(UnauthorizedException):
        await service.book_appointment(
            stranger, booking(pet_id, vet.id, datetime(2024, 5, 31, 10, tzinfo=UTC))
        )


@pytest.mark.asyncio
async def test_past_instant_for_inactive_vet_is_not_found(db_session, service, owner, pet_id):
    inactive = await create_vet(db_session, full_name="Dr. Away", is_active=False)

    with pytest.raises(NotFoundException):
        await service.book_appointment(
            owner, booking(pet_id, inactive.id, datetime(2024, 5, 31, 10, tzinfo=UTC))
        )



@pytest.mark.asyncio
async def test_book_requires_pet_ownership(service, stranger, vet, pet_id):
    with pytest.raises(UnauthorizedException) as exc_info:
        await service.book_appointment(stranger, booking(pet_id, vet.id, at(10)))

    assert exc_info.value.message == "Pet not found or you do not own this pet"
    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_ownership_is_checked_before_vet(db_session, service, stranger, pet_id):
    inactive = await create_vet(db_session, full_name="Dr. Away", is_active=False)

    with pytest.raises(UnauthorizedException):
        await service.book_appointment(stranger, booking(pet_id, inactive.id, at(10)))


@pytest.mark.asyncio
async def test_book_inactive_vet_not_found(db_session, service, owner, pet_id):
    inactive = await create_vet(db_session, full_name="Dr. Away", is_active=False)

    with pytest.raises(NotFoundException) as exc_info:
        await service.book_appointment(owner, booking(pet_id, inactive.id, at(10)))

    assert exc_info.value.message == "Vet not available"


@pytest.mark.asyncio
async def test_book_unknown_vet_not_found(service, owner, pet_id):
    with pytest.raises(NotFoundException):
        await service.book_appointment(owner, booking(pet_id, uuid4(), at(10)))


@pytest.mark.asyncio
async def test_book_taken_slot_conflicts(db_session, service, owner, vet, pet_id):
    second_pet = await create_pet(db_session, owner, name="Misty")
    await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    with pytest.raises(ConflictException) as exc_info:
        await service.book_appointment(owner, booking(second_pet, vet.id, at(10)))

    assert exc_info.value.message == SLOT_TAKEN_MESSAGE
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_cancelled_slot_can_be_rebooked(service, owner, vet, pet_id):
    first = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))
    await service.cancel_appointment(first.id, owner)

    second = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    assert second.id != first.id
    assert second.status == AppointmentStatus.PENDING


@pytest.mark.asyncio
async def test_concurrent_bookings_only_one_wins(database, db_session, owner, vet, pet_id):
    """Racing requests for one slot produce a single booking and conflicts for the rest."""
    attempts = 5

    async def attempt():
        async with database.session() as session:
            service = AppointmentService(session, clock=fixed_clock)
            return await service.book_appointment(owner, booking(pet_id, vet.id, at(14)))

    results = await asyncio.gather(*(attempt() for _ in range(attempts)), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, BaseException)]
    conflicts = [r for r in results if isinstance(r, ConflictException)]
    assert len(successes) == 1
    assert len(conflicts) == attempts - 1

    count = await db_session.execute(
        select(func.count())
        .select_from(appointments)
        .where(appointments.c.vet_id == vet.id, appointments.c.appointment_time == at(14))
    )
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_insert_race_is_reported_as_conflict(db_session, owner, vet, pet_id):
    """A slot taken after the pre-check still surfaces as a conflict."""
    service = AppointmentService(db_session, clock=fixed_clock)
    await service.book_appointment(owner, booking(pet_id, vet.id, at(15)))

    async def slot_looks_free(*args, **kwargs):
        return False

    service._slot_taken = slot_looks_free

    with pytest.raises(ConflictException) as exc_info:
        await service.book_appointment(owner, booking(pet_id, vet.id, at(15)))
    assert exc_info.value.message == SLOT_TAKEN_MESSAGE


@pytest.mark.asyncio
async def test_reschedule_moves_and_keeps_payment(service, owner, vet, pet_id):
    appointment = await service.book_appointment(
        owner, booking(pet_id, vet.id, at(10), notes="First visit")
    )

    moved = await service.reschedule_appointment(
        appointment.id, owner, AppointmentReschedule(appointment_time=at(11))
    )

    assert moved.appointment_time == at(11)
    assert moved.status == AppointmentStatus.PENDING
    assert moved.payment_status == PaymentStatus.PENDING
    assert moved.notes == "First visit"
    assert moved.updated_at == fixed_clock()


@pytest.mark.asyncio
async def test_reschedule_forfeits_confirmation(service, owner, vet, pet_id):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))
    confirmed = await service.confirm_appointment(appointment.id, vet)
    assert confirmed.status == AppointmentStatus.CONFIRMED

    moved = await service.reschedule_appointment(
        appointment.id, vet, AppointmentReschedule(appointment_time=at(12), notes="Vet moved")
    )

    assert moved.status == AppointmentStatus.PENDING
    assert moved.notes == "Vet moved"


@pytest.mark.asyncio
async def test_reschedule_into_taken_slot_conflicts(service, owner, vet, pet_id):
    await service.book_appointment(owner, booking(pet_id, vet.id, at(11)))
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    with pytest.raises(ConflictException):
        await service.reschedule_appointment(
            appointment.id, owner, AppointmentReschedule(appointment_time=at(11))
        )

@pytest.mark.asyncio
async def test_reschedule_race_is_reported_as_conflict(service, owner, vet, pet_id):
    """A slot taken after the reschedule pre-check still surfaces as a conflict."""
    await service.book_appointment(owner, booking(pet_id, vet.id, at(15)))
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    async def slot_looks_free(*args, **kwargs):
        return False

    service._slot_taken = slot_looks_free

    with pytest.raises(ConflictException) as exc_info:
        await service.reschedule_appointment(
            appointment.id, owner, AppointmentReschedule(appointment_time=at(15))
        )
    assert exc_info.value.message == SLOT_TAKEN_MESSAGE

    # The failed move left the appointment where it was
    unchanged = await service.get_appointment(appointment.id, owner)
    assert unchanged.appointment_time == at(10)


@pytest.mark.asyncio
async def test_concurrent_reschedules_only_one_wins(
    database, service, db_session, owner, vet, pet_id
):
    """Racing moves into one slot leave a single appointment holding it."""
    sources = [
        await service.book_appointment(owner, booking(pet_id, vet.id, at(hour)))
        for hour in (10, 11, 12)
    ]

    async def attempt(appointment_id):
        async with database.session() as session:
            return await AppointmentService(session, clock=fixed_clock).reschedule_appointment(
                appointment_id, owner, AppointmentReschedule(appointment_time=at(16))
            )

    results = await asyncio.gather(
        *(attempt(source.id) for source in sources), return_exceptions=True
    )

    successes = [r for r in results if not isinstance(r, BaseException)]
    conflicts = [r for r in results if isinstance(r, ConflictException)]
    assert len(successes) == 1
    assert len(conflicts) == len(sources) - 1
    assert successes[0].appointment_time == at(16)

    count = await db_session.execute(
        select(func.count())
        .select_from(appointments)
        .where(appointments.c.vet_id == vet.id, appointments.c.appointment_time == at(16))
    )
    assert count.scalar() == 1



@pytest.mark.asyncio
async def test_reschedule_to_same_slot_is_not_a_conflict(service, owner, vet, pet_id):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    moved = await service.reschedule_appointment(
        appointment.id, owner, AppointmentReschedule(appointment_time=at(10), notes="Same time")
    )

    assert moved.appointment_time == at(10)
    assert moved.notes == "Same time"


@pytest.mark.asyncio
async def test_reschedule_into_cancelled_slot(service, owner, vet, pet_id):
    cancelled = await service.book_appointment(owner, booking(pet_id, vet.id, at(11)))
    await service.cancel_appointment(cancelled.id, owner)
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    moved = await service.reschedule_appointment(
        appointment.id, owner, AppointmentReschedule(appointment_time=at(11))
    )

    assert moved.appointment_time == at(11)


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", ["completed", "cancelled"])
async def test_reschedule_terminal_rejected(db_session, service, owner, vet, pet_id, terminal):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))
    await force_status(db_session, appointment.id, terminal)

    with pytest.raises(InvalidStateException) as exc_info:
        await service.reschedule_appointment(
            appointment.id, owner, AppointmentReschedule(appointment_time=at(11))
        )

    assert exc_info.value.message == f"Cannot reschedule a {terminal} appointment"


@pytest.mark.asyncio
async def test_reschedule_by_stranger_unauthorized(service, owner, stranger, vet, pet_id):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    with pytest.raises(UnauthorizedException):
        await service.reschedule_appointment(
            appointment.id, stranger, AppointmentReschedule(appointment_time=at(11))
        )

@pytest.mark.asyncio
async def test_reschedule_by_stranger_to_past_instant_unauthorized(
    service, owner, stranger, vet, pet_id
):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    with pytest.raises(UnauthorizedException):
        await service.reschedule_appointment(
            appointment.id,
            stranger,
            AppointmentReschedule(appointment_time=datetime(2024, 5, 31, 10, tzinfo=UTC)),
        )


@pytest.mark.asyncio
async def test_reschedule_terminal_to_past_instant_reports_state(
    db_session, service, owner, vet, pet_id
):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))
    await force_status(db_session, appointment.id, "completed")

    with pytest.raises(InvalidStateException):
        await service.reschedule_appointment(
            appointment.id,
            owner,
            AppointmentReschedule(appointment_time=datetime(2024, 5, 31, 10, tzinfo=UTC)),
        )


@pytest.mark.asyncio
async def test_reschedule_to_past_instant_rejected(service, owner, vet, pet_id):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    with pytest.raises(ValidationException):
        await service.reschedule_appointment(
            appointment.id,
            owner,
            AppointmentReschedule(appointment_time=datetime(2024, 5, 31, 10, tzinfo=UTC)),
        )



@pytest.mark.asyncio
async def test_reschedule_missing_appointment(service, owner):
    with pytest.raises(NotFoundException):
        await service.reschedule_appointment(
            uuid4(), owner, AppointmentReschedule(appointment_time=at(11))
        )


@pytest.mark.asyncio
async def test_cancel_by_owner_and_vet(service, owner, vet, pet_id):
    first = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))
    second = await service.book_appointment(owner, booking(pet_id, vet.id, at(11)))

    by_owner = await service.cancel_appointment(first.id, owner)
    by_vet = await service.cancel_appointment(second.id, vet)

    assert by_owner.status == AppointmentStatus.CANCELLED
    assert by_vet.status == AppointmentStatus.CANCELLED
    assert by_owner.booking_state == BookingState.CANCELLED


@pytest.mark.asyncio
async def test_cancel_confirmed(service, owner, vet, pet_id):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))
    await service.confirm_appointment(appointment.id, vet)

    cancelled = await service.cancel_appointment(appointment.id, owner)

    assert cancelled.status == AppointmentStatus.CANCELLED


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", ["completed", "cancelled"])
async def test_cancel_terminal_rejected(db_session, service, owner, vet, pet_id, terminal):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))
    await force_status(db_session, appointment.id, terminal)

    with pytest.raises(InvalidStateException) as exc_info:
        await service.cancel_appointment(appointment.id, owner)

    assert exc_info.value.message == f"Cannot cancel a {terminal} appointment"
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_cancel_by_stranger_unauthorized(service, owner, stranger, vet, pet_id):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    with pytest.raises(UnauthorizedException) as exc_info:
        await service.cancel_appointment(appointment.id, stranger)

    assert exc_info.value.message == "Unauthorized to cancel this appointment"


@pytest.mark.asyncio
async def test_cancel_missing_appointment(service, owner):
    with pytest.raises(NotFoundException):
        await service.cancel_appointment(uuid4(), owner)


@pytest.mark.asyncio
async def test_confirm_only_by_assigned_vet(db_session, service, owner, vet, pet_id):
    other_vet = await create_vet(db_session, full_name="Dr. Other")
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    with pytest.raises(UnauthorizedException):
        await service.confirm_appointment(appointment.id, owner)
    with pytest.raises(UnauthorizedException):
        await service.confirm_appointment(appointment.id, other_vet)

    confirmed = await service.confirm_appointment(appointment.id, vet)
    assert confirmed.status == AppointmentStatus.CONFIRMED
    # Payment is not a precondition for confirmation
    assert confirmed.payment_status == PaymentStatus.PENDING
    assert confirmed.booking_state == BookingState.CONFIRMED_UNPAID


@pytest.mark.asyncio
async def test_confirm_cancelled_rejected(service, owner, vet, pet_id):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))
    await service.cancel_appointment(appointment.id, owner)

    with pytest.raises(InvalidStateException) as exc_info:
        await service.confirm_appointment(appointment.id, vet)

    assert exc_info.value.message == "Cannot confirm a cancelled appointment"


@pytest.mark.asyncio
async def test_get_appointment_visibility(service, owner, stranger, vet, pet_id):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    assert (await service.get_appointment(appointment.id, owner)).id == appointment.id
    assert (await service.get_appointment(appointment.id, vet)).id == appointment.id
    with pytest.raises(UnauthorizedException):
        await service.get_appointment(appointment.id, stranger)


@pytest.mark.asyncio
async def test_list_appointments_for_owner_and_vet(service, owner, stranger, vet, pet_id):
    first = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))
    second = await service.book_appointment(owner, booking(pet_id, vet.id, at(11)))
    await service.cancel_appointment(first.id, owner)

    for user in (owner, vet):
        listing = await service.list_appointments(user)
        assert listing.total == 2
        assert [item.id for item in listing.items] == [second.id, first.id]

    cancelled = await service.list_appointments(owner, AppointmentStatus.CANCELLED)
    assert [item.id for item in cancelled.items] == [first.id]

    assert (await service.list_appointments(stranger)).total == 0


@pytest.mark.asyncio
async def test_attach_payment_reference(service, owner, stranger, vet, pet_id):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    with pytest.raises(UnauthorizedException):
        await service.attach_payment_reference(appointment.id, stranger, "order_X1")

    updated = await service.attach_payment_reference(appointment.id, owner, "order_X1")
    assert updated.payment_reference == "order_X1"
    assert updated.payment_status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_attach_payment_reference_on_cancelled(service, owner, vet, pet_id):
    appointment = await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))
    await service.cancel_appointment(appointment.id, owner)

    with pytest.raises(InvalidStateException) as exc_info:
        await service.attach_payment_reference(appointment.id, owner, "order_X1")

    assert exc_info.value.message == "Cannot start payment for a cancelled appointment"


@pytest.mark.asyncio
async def test_writes_invalidate_caches(db_session, owner, vet, pet_id):
    mock_redis = MagicMock()
    mock_redis.get.return_value = None
    mock_redis.scan_iter.return_value = []
    service = AppointmentService(db_session, CacheManager(redis_client=mock_redis), fixed_clock)

    await service.book_appointment(owner, booking(pet_id, vet.id, at(10)))

    mock_redis.incr.assert_any_call(f"slots:gen:{vet.id}:2024-06-10")
    mock_redis.expire.assert_any_call(f"slots:gen:{vet.id}:2024-06-10", SLOT_GENERATION_TTL)
    patterns = [c.kwargs["match"] for c in mock_redis.scan_iter.call_args_list]
    assert f"appointments:list:{owner.id}:*" in patterns
    assert f"appointments:list:{vet.id}:*" in patterns
