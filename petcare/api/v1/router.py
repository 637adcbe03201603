"""API v1 router configuration."""

from fastapi import APIRouter

from petcare.api.v1.endpoints import appointments, health, payments, vets

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(vets.router, prefix="/vets", tags=["Vets"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
