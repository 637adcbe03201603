"""Pet table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Column, ForeignKey, String, Table, Text, Uuid, func

from petcare.models.base import UTCDateTime, metadata

pets = Table(
    "pets",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "owner_id",
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("name", String(100), nullable=False),
    Column("species", String(50), nullable=False),
    Column("breed", String(100)),
    Column("medical_notes", Text),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
)
