"""Profile table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, String, Table, Uuid, func

from petcare.models.base import UTCDateTime, metadata

profiles = Table(
    "profiles",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("role", String(20), nullable=False, server_default="customer"),
    Column("full_name", String(255), nullable=False),
    Column("phone", String(20), nullable=False, unique=True),
    Column("city", String(100)),
    Column("state", String(100)),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
    CheckConstraint(
        "role IN ('customer', 'vet', 'admin', 'store_manager')",
        name="profiles_role_check",
    ),
)
