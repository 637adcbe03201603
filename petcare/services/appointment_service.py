"""Appointment service for booking, rescheduling and lifecycle transitions."""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from petcare.core.clock import Clock, utcnow
from petcare.core.exceptions import (
    ConflictException,
    InvalidStateException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from petcare.core.identity import ActingUser
from petcare.core.redis_client import CacheManager
from petcare.models.appointments import appointments
from petcare.models.pets import pets
from petcare.models.vets import vets
from petcare.schemas.appointments import (
    LIVE_STATUSES,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    PaymentStatus,
)
from petcare.services import lifecycle
from petcare.services.slot_service import bump_slot_generation

logger = structlog.get_logger()

SLOT_TAKEN_MESSAGE = "This time slot is already booked. Please select another time."

_LIVE = [s.value for s in LIVE_STATUSES]


def appointments_cache_pattern(user_id: UUID) -> str:
    """Key pattern covering every cached appointment list of a user."""
    return f"appointments:list:{user_id}:*"


def appointments_cache_key(user_id: UUID, status: AppointmentStatus | None) -> str:
    return f"appointments:list:{user_id}:{status.value if status else 'all'}"


def invalidate_appointment_caches(
    cache: CacheManager | None,
    *,
    vet_id: UUID,
    owner_id: UUID | None,
    instants: list[datetime],
) -> None:
    """Drop slot and list caches touched by a write to one appointment."""
    if cache is None:
        return
    for day in {instant.date() for instant in instants}:
        bump_slot_generation(cache, vet_id, day)
    cache.delete_pattern(appointments_cache_pattern(vet_id))
    if owner_id is not None:
        cache.delete_pattern(appointments_cache_pattern(owner_id))


class AppointmentService:
    """Service for managing appointments."""

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheManager | None = None,
        clock: Clock = utcnow,
    ):
        """Initialize service with database session, optional cache and a clock."""
        self.db = db
        self.cache = cache
        self.clock = clock

    async def _fetch(self, appointment_id: UUID) -> dict[str, Any]:
        """Load an appointment together with its pet's owner."""
        stmt = (
            select(appointments, pets.c.owner_id)
            .join(pets, pets.c.id == appointments.c.pet_id)
            .where(appointments.c.id == appointment_id)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()

        if not row:
            raise NotFoundException("Appointment not found")

        return dict(row)

    async def _slot_taken(
        self,
        vet_id: UUID,
        instant: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        conditions = [
            appointments.c.vet_id == vet_id,
            appointments.c.appointment_time == instant,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        ]
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)

        stmt = select(appointments.c.id).where(and_(*conditions)).limit(1)
        result = await self.db.execute(stmt)
        return result.first() is not None

    def _ensure_future(self, instant: datetime) -> None:
        if instant <= self.clock():
            raise ValidationException("Appointment time must be in the future")

    def _invalidate(self, row: dict[str, Any], *instants: datetime) -> None:
        invalidate_appointment_caches(
            self.cache,
            vet_id=row["vet_id"],
            owner_id=row.get("owner_id"),
            instants=[row["appointment_time"], *instants],
        )

    @staticmethod
    def _response(row: Any) -> AppointmentResponse:
        return AppointmentResponse.model_validate(dict(row))

    async def book_appointment(
        self,
        user: ActingUser,
        data: AppointmentCreate,
    ) -> AppointmentResponse:
        """
        Book a pending appointment for one of the user's pets.

        Preconditions are checked in order and the first failure is raised.
        The slot pre-check only improves the error message; the partial unique
        index on (vet_id, appointment_time) decides races.

        Args:
            user: Acting user, must own the pet
            data: Booking request

        Returns:
            Created appointment

        Raises:
            UnauthorizedException: If the user does not own the pet
            NotFoundException: If the vet is missing or inactive
            ValidationException: If the instant is not in the future
            ConflictException: If the slot is already taken
        """
        pet_stmt = select(pets.c.id).where(
            and_(pets.c.id == data.pet_id, pets.c.owner_id == user.id)
        )
        if (await self.db.execute(pet_stmt)).first() is None:
            raise UnauthorizedException("Pet not found or you do not own this pet")

        vet_stmt = select(vets.c.is_active).where(vets.c.profile_id == data.vet_id)
        vet = (await self.db.execute(vet_stmt)).first()
        if vet is None or not vet.is_active:
            raise NotFoundException("Vet not available")

        self._ensure_future(data.appointment_time)

        if await self._slot_taken(data.vet_id, data.appointment_time):
            logger.info(
                "appointment_conflict",
                vet_id=str(data.vet_id),
                appointment_time=data.appointment_time.isoformat(),
                stage="precheck",
            )
            raise ConflictException(SLOT_TAKEN_MESSAGE)

        now = self.clock()
        stmt = (
            appointments.insert()
            .values(
                pet_id=data.pet_id,
                vet_id=data.vet_id,
                appointment_time=data.appointment_time,
                status=AppointmentStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                notes=data.notes,
                created_at=now,
                updated_at=now,
            )
            .returning(appointments)
        )

        try:
            result = await self.db.execute(stmt)
            row = result.mappings().one()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(
                "appointment_conflict",
                vet_id=str(data.vet_id),
                appointment_time=data.appointment_time.isoformat(),
                stage="insert",
                error=str(e.orig),
            )
            raise ConflictException(SLOT_TAKEN_MESSAGE) from None

        appointment = self._response(row)
        self._invalidate({**row, "owner_id": user.id})

        logger.info(
            "appointment_booked",
            appointment_id=str(appointment.id),
            vet_id=str(appointment.vet_id),
            appointment_time=appointment.appointment_time.isoformat(),
        )
        return appointment

    async def get_appointment(
        self,
        appointment_id: UUID,
        user: ActingUser,
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            UnauthorizedException: If the user is neither owner nor assigned vet
        """
        row = await self._fetch(appointment_id)

        if not lifecycle.is_participant(user, row["owner_id"], row["vet_id"]):
            raise UnauthorizedException("Access denied to this appointment")

        return self._response(row)

    async def list_appointments(
        self,
        user: ActingUser,
        status: AppointmentStatus | None = None,
    ) -> AppointmentListResponse:
        """
        List appointments the user takes part in, as owner or as vet.

        Args:
            user: Acting user
            status: Optional status filter

        Returns:
            Appointments, latest slot first
        """
        cache_key = appointments_cache_key(user.id, status)
        if self.cache:
            cached = self.cache.get_json(cache_key)
            if cached is not None:
                return AppointmentListResponse.model_validate(cached)

        conditions = [or_(pets.c.owner_id == user.id, appointments.c.vet_id == user.id)]
        if status:
            conditions.append(appointments.c.status == status.value)

        stmt = (
            select(appointments)
            .join(pets, pets.c.id == appointments.c.pet_id)
            .where(and_(*conditions))
            .order_by(appointments.c.appointment_time.desc())
        )
        result = await self.db.execute(stmt)
        items = [self._response(row) for row in result.mappings().all()]

        response = AppointmentListResponse(total=len(items), items=items)
        if self.cache:
            self.cache.set_json(cache_key, response.model_dump(mode="json"), ttl=300)
        return response

    async def reschedule_appointment(
        self,
        appointment_id: UUID,
        user: ActingUser,
        data: AppointmentReschedule,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new instant.

        Rescheduling always returns the appointment to ``pending`` so the vet
        has to confirm again. ``payment_status`` is left untouched.

        Raises:
            NotFoundException: If appointment not found
            UnauthorizedException: If the user is neither owner nor assigned vet
            InvalidStateException: If the appointment is completed or cancelled
            ValidationException: If the new instant is not in the future
            ConflictException: If another live appointment holds the new slot
        """
        row = await self._fetch(appointment_id)

        if not lifecycle.is_participant(user, row["owner_id"], row["vet_id"]):
            raise UnauthorizedException("Unauthorized to reschedule this appointment")

        lifecycle.ensure_not_terminal("reschedule", row["status"])
        self._ensure_future(data.appointment_time)

        if await self._slot_taken(row["vet_id"], data.appointment_time, exclude_id=appointment_id):
            raise ConflictException(SLOT_TAKEN_MESSAGE)

        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status.in_(_LIVE),
                )
            )
            .values(
                appointment_time=data.appointment_time,
                notes=data.notes if data.notes is not None else row["notes"],
                status=AppointmentStatus.PENDING.value,
                updated_at=self.clock(),
            )
            .returning(appointments)
        )

        try:
            result = await self.db.execute(stmt)
            updated = result.mappings().first()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(
                "appointment_conflict",
                vet_id=str(row["vet_id"]),
                appointment_time=data.appointment_time.isoformat(),
                stage="reschedule",
                error=str(e.orig),
            )
            raise ConflictException(SLOT_TAKEN_MESSAGE) from None

        if updated is None:
            # Moved to a terminal state between the read and the write
            current = await self._fetch(appointment_id)
            raise lifecycle.invalid_state("reschedule", current["status"])

        self._invalidate(row, data.appointment_time)
        logger.info(
            "appointment_rescheduled",
            appointment_id=str(appointment_id),
            previous_time=row["appointment_time"].isoformat(),
            appointment_time=data.appointment_time.isoformat(),
            previous_status=row["status"],
        )
        return self._response(updated)

    async def _transition(
        self,
        appointment_id: UUID,
        user: ActingUser,
        target: AppointmentStatus,
    ) -> AppointmentResponse:
        row = await self._fetch(appointment_id)
        lifecycle.authorize_transition(user, row["owner_id"], row["vet_id"], target)
        lifecycle.ensure_transition(row["status"], target)

        # Compare-and-set on the status that was validated
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status == row["status"],
                )
            )
            .values(status=target.value, updated_at=self.clock())
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        updated = result.mappings().first()
        await self.db.commit()

        if updated is None:
            current = await self._fetch(appointment_id)
            raise lifecycle.invalid_state(lifecycle.TRANSITION_VERBS[target], current["status"])

        self._invalidate(row)
        logger.info(
            f"appointment_{target.value}",
            appointment_id=str(appointment_id),
            previous_status=row["status"],
            actor_id=str(user.id),
        )
        return self._response(updated)

    async def cancel_appointment(
        self,
        appointment_id: UUID,
        user: ActingUser,
    ) -> AppointmentResponse:
        """
        Cancel an appointment; owner or assigned vet.

        Raises:
            NotFoundException: If appointment not found
            UnauthorizedException: If the user is neither owner nor assigned vet
            InvalidStateException: If already completed or cancelled
        """
        return await self._transition(appointment_id, user, AppointmentStatus.CANCELLED)

    async def confirm_appointment(
        self,
        appointment_id: UUID,
        user: ActingUser,
    ) -> AppointmentResponse:
        """
        Confirm a pending appointment; assigned vet only.

        Payment is not a precondition, a vet may confirm an unpaid booking.

        Raises:
            NotFoundException: If appointment not found
            UnauthorizedException: If the user is not the assigned vet
            InvalidStateException: If the appointment is not pending
        """
        return await self._transition(appointment_id, user, AppointmentStatus.CONFIRMED)

    async def attach_payment_reference(
        self,
        appointment_id: UUID,
        user: ActingUser,
        payment_reference: str,
    ) -> AppointmentResponse:
        """
        Record the provider order used for a payment attempt.

        A failed attempt may be retried; doing so resets ``payment_status``
        to ``pending``.

        Raises:
            NotFoundException: If appointment not found
            UnauthorizedException: If the user does not own the pet
            InvalidStateException: If the appointment is terminal or already paid
        """
        row = await self._fetch(appointment_id)

        if user.id != row["owner_id"]:
            raise UnauthorizedException("Unauthorized to pay for this appointment")

        lifecycle.ensure_not_terminal("start payment for", row["status"])
        if row["payment_status"] == PaymentStatus.PAID.value:
            raise InvalidStateException(
                f"Cannot start payment for a {row['payment_status']} appointment",
                current_status=row["payment_status"],
            )

        payable = [PaymentStatus.PENDING.value, PaymentStatus.FAILED.value]
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status.in_(_LIVE),
                    appointments.c.payment_status.in_(payable),
                )
            )
            .values(
                payment_reference=payment_reference,
                payment_status=PaymentStatus.PENDING.value,
                updated_at=self.clock(),
            )
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        updated = result.mappings().first()
        await self.db.commit()

        if updated is None:
            current = await self._fetch(appointment_id)
            raise InvalidStateException(
                f"Cannot start payment for a {current['payment_status']} appointment",
                current_status=current["payment_status"],
            )

        self._invalidate(row)
        logger.info(
            "payment_reference_attached",
            appointment_id=str(appointment_id),
            payment_reference=payment_reference,
        )
        return self._response(updated)
