"""Vet table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    func,
    true,
)

from petcare.models.base import UTCDateTime, metadata

# Vet details extend a profile; appointments reference the profile id.
vets = Table(
    "vets",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "profile_id",
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    Column("license_number", String(100), nullable=False, unique=True),
    Column("clinic_name", String(255), nullable=False),
    Column("address", Text, nullable=False),
    Column("consultation_fee", Integer, nullable=False),
    Column("specialization", String(255)),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
    CheckConstraint("consultation_fee > 0", name="vets_consultation_fee_check"),
)
