"""Appointment endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from petcare.dependencies import Cache, CurrentUser, DatabaseSession, ServiceClock
from petcare.schemas.appointments import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    PaymentReferenceCreate,
)
from petcare.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def book_appointment(
    data: AppointmentCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
    clock: ServiceClock,
) -> AppointmentResponse:
    """
    Book a pending appointment for one of the caller's pets.

    Responds 403 if the pet is not the caller's, 404 if the vet is not
    available and 409 if the slot is taken.
    """
    service = AppointmentService(db, cache, clock)
    return await service.book_appointment(current_user, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List my appointments",
)
async def list_appointments(
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
) -> AppointmentListResponse:
    """List appointments for the caller's pets, or assigned to the caller as vet."""
    service = AppointmentService(db, cache)
    return await service.list_appointments(current_user, status_filter)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id, current_user)


@router.put(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
    clock: ServiceClock,
) -> AppointmentResponse:
    """
    Move an appointment to a new slot.

    The appointment returns to pending and must be confirmed again.
    """
    service = AppointmentService(db, cache, clock)
    return await service.reschedule_appointment(appointment_id, current_user, data)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
    clock: ServiceClock,
) -> AppointmentResponse:
    """Cancel an appointment as its pet owner or assigned vet."""
    service = AppointmentService(db, cache, clock)
    return await service.cancel_appointment(appointment_id, current_user)


@router.post(
    "/{appointment_id}/confirm",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm appointment",
)
async def confirm_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
    clock: ServiceClock,
) -> AppointmentResponse:
    """Confirm a pending appointment. Assigned vet only."""
    service = AppointmentService(db, cache, clock)
    return await service.confirm_appointment(appointment_id, current_user)


@router.post(
    "/{appointment_id}/payment-reference",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Record payment order",
)
async def attach_payment_reference(
    appointment_id: UUID,
    data: PaymentReferenceCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
    clock: ServiceClock,
) -> AppointmentResponse:
    """Record the provider order id a payment attempt for this appointment uses."""
    service = AppointmentService(db, cache, clock)
    return await service.attach_payment_reference(
        appointment_id, current_user, data.payment_reference
    )
