"""Vet directory and slot availability endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from petcare.config import settings
from petcare.dependencies import Cache, DatabaseSession
from petcare.schemas.appointments import AvailableSlotsResponse
from petcare.schemas.vets import VetResponse
from petcare.services.slot_service import SlotService, parse_slot_date
from petcare.services.vet_service import VetService

router = APIRouter()


@router.get(
    "/",
    response_model=list[VetResponse],
    status_code=status.HTTP_200_OK,
    summary="List active vets",
)
async def list_vets(db: DatabaseSession) -> list[VetResponse]:
    """List vets currently accepting bookings."""
    return await VetService(db).list_active_vets()


@router.get(
    "/{vet_id}/slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    summary="List available slots",
)
async def list_available_slots(
    vet_id: UUID,
    db: DatabaseSession,
    cache: Cache,
    date: str = Query(..., description="Calendar day, YYYY-MM-DD"),
) -> AvailableSlotsResponse:
    """
    List the 30-minute slots between 09:00 and 18:00 UTC that look free.

    Responds 422 if the date cannot be parsed.
    """
    day = parse_slot_date(date)
    service = SlotService(db, cache, cache_ttl=settings.slot_cache_ttl)
    slots = await service.list_available_slots(vet_id, day)
    return AvailableSlotsResponse(vet_id=vet_id, date=day, slots=slots)
