"""Shop order table model using SQLAlchemy Core.

Only the payment columns matter to this service; order management lives elsewhere.
"""

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Table, Text, Uuid, func

from petcare.models.base import UTCDateTime, metadata

orders = Table(
    "orders",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "customer_id",
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("total_amount", Integer, nullable=False),
    Column("payment_reference", Text, unique=True),
    Column("order_status", String(20), nullable=False, server_default="pending"),
    Column("payment_status", String(20), nullable=False, server_default="pending"),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
    CheckConstraint(
        "payment_status IN ('pending', 'paid', 'failed')",
        name="orders_payment_status_check",
    ),
)
