"""Vet directory lookups."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petcare.models.profiles import profiles
from petcare.models.vets import vets
from petcare.schemas.vets import VetResponse


class VetService:
    """Read-only access to the vets that accept bookings."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def list_active_vets(self) -> list[VetResponse]:
        """Active vets ordered by name."""
        stmt = (
            select(
                vets.c.profile_id,
                profiles.c.full_name,
                vets.c.clinic_name,
                vets.c.address,
                vets.c.consultation_fee,
                vets.c.specialization,
                vets.c.is_active,
            )
            .join(profiles, profiles.c.id == vets.c.profile_id)
            .where(vets.c.is_active.is_(True))
            .order_by(profiles.c.full_name)
        )
        result = await self.db.execute(stmt)
        return [VetResponse.model_validate(dict(row)) for row in result.mappings().all()]
