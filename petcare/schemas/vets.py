"""Vet schemas."""

from uuid import UUID

from pydantic import BaseModel


class VetResponse(BaseModel):
    """Public vet listing entry."""

    profile_id: UUID
    full_name: str
    clinic_name: str
    address: str
    consultation_fee: int
    specialization: str | None = None
    is_active: bool

    model_config = {"from_attributes": True}
