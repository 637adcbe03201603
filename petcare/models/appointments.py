"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from petcare.models.base import UTCDateTime, metadata

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # References
    Column(
        "pet_id",
        Uuid,
        ForeignKey("pets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column(
        "vet_id",
        Uuid,
        ForeignKey("profiles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    ),
    # A point-in-time slot; length is implicit
    Column("appointment_time", UTCDateTime, nullable=False, index=True),
    # Status management
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("payment_status", String(20), nullable=False, server_default="pending"),
    Column("payment_reference", Text, nullable=True),
    Column("notes", Text, nullable=True),
    # Audit fields
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('pending', 'paid', 'failed')",
        name="appointments_payment_status_check",
    ),
)

# At most one live appointment per vet and instant. Cancelled rows are excluded
# so a freed slot can be booked again.
Index(
    "uq_appointments_vet_slot_live",
    appointments.c.vet_id,
    appointments.c.appointment_time,
    unique=True,
    postgresql_where=text("status <> 'cancelled'"),
    sqlite_where=text("status <> 'cancelled'"),
)
