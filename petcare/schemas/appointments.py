"""Appointment schemas for request/response validation."""

from datetime import UTC, date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class BookingState(str, Enum):
    """Combined view of appointment and payment status."""

    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_FAILED = "payment_failed"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED_PAID = "confirmed_paid"
    CONFIRMED_UNPAID = "confirmed_unpaid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})
LIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})


def booking_state_for(status: AppointmentStatus, payment_status: PaymentStatus) -> BookingState:
    """Derive the combined booking state from the two stored axes."""
    if status == AppointmentStatus.CANCELLED:
        return BookingState.CANCELLED
    if status == AppointmentStatus.COMPLETED:
        return BookingState.COMPLETED
    if status == AppointmentStatus.CONFIRMED:
        if payment_status == PaymentStatus.PAID:
            return BookingState.CONFIRMED_PAID
        return BookingState.CONFIRMED_UNPAID
    if payment_status == PaymentStatus.PAID:
        return BookingState.AWAITING_CONFIRMATION
    if payment_status == PaymentStatus.FAILED:
        return BookingState.PAYMENT_FAILED
    return BookingState.AWAITING_PAYMENT


def _as_utc(value: datetime) -> datetime:
    # Naive instants are interpreted as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    pet_id: UUID
    vet_id: UUID
    appointment_time: datetime
    notes: str | None = Field(None, max_length=1000)

    @field_validator("appointment_time")
    @classmethod
    def normalize_time(cls, v: datetime) -> datetime:
        return _as_utc(v)


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to another instant."""

    appointment_time: datetime
    notes: str | None = Field(None, max_length=1000)

    @field_validator("appointment_time")
    @classmethod
    def normalize_time(cls, v: datetime) -> datetime:
        return _as_utc(v)


class PaymentReferenceCreate(BaseModel):
    """Schema for recording the provider order that a payment attempt uses."""

    payment_reference: str = Field(..., min_length=1, max_length=255)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    pet_id: UUID
    vet_id: UUID
    appointment_time: datetime
    status: AppointmentStatus
    payment_status: PaymentStatus
    payment_reference: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def booking_state(self) -> BookingState:
        return booking_state_for(self.status, self.payment_status)


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    total: int
    items: list[AppointmentResponse]


class AvailableSlotsResponse(BaseModel):
    """Free slot start instants for one vet on one day."""

    vet_id: UUID
    date: date
    slots: list[datetime]
