"""Let cancelled appointments release their slot.

The plain (vet_id, appointment_time) unique constraint kept a cancelled slot
unbookable forever. Replace it with a unique index limited to rows whose
status is not 'cancelled'.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 00:10:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LIVE_ONLY = sa.text("status <> 'cancelled'")


def upgrade() -> None:
    """Swap the plain constraint for a partial unique index."""
    with op.batch_alter_table("appointments") as batch_op:
        batch_op.drop_constraint("unique_vet_slot", type_="unique")

    op.create_index(
        "uq_appointments_vet_slot_live",
        "appointments",
        ["vet_id", "appointment_time"],
        unique=True,
        postgresql_where=LIVE_ONLY,
        sqlite_where=LIVE_ONLY,
    )


def downgrade() -> None:
    """Restore the plain constraint; fails if a cancelled row shares a live slot."""
    op.drop_index("uq_appointments_vet_slot_live", table_name="appointments")

    with op.batch_alter_table("appointments") as batch_op:
        batch_op.create_unique_constraint("unique_vet_slot", ["vet_id", "appointment_time"])
