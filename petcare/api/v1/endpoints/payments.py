"""Payment verification endpoints."""

from fastapi import APIRouter, status

from petcare.dependencies import CurrentUser, DatabaseSession, Reconciler
from petcare.schemas.payments import (
    PaymentFailureRequest,
    PaymentVerificationRequest,
    PaymentVerificationResponse,
)

router = APIRouter()


@router.post(
    "/verify",
    response_model=PaymentVerificationResponse,
    status_code=status.HTTP_200_OK,
    summary="Verify payment proof",
)
async def verify_payment(
    proof: PaymentVerificationRequest,
    db: DatabaseSession,
    reconciler: Reconciler,
) -> PaymentVerificationResponse:
    """
    Verify a provider payment proof and mark the target paid.

    Called by the client after checkout or by the provider webhook, so no
    bearer token is required; the signature is the credential. Responds 401
    on a bad signature and 409 if the payment was already applied.
    """
    return await reconciler.verify_payment(db, proof)


@router.post(
    "/fail",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark payment attempt failed",
)
async def fail_payment(
    data: PaymentFailureRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
    reconciler: Reconciler,
) -> None:
    """Mark the caller's pending payment attempt as failed so it can be retried."""
    await reconciler.fail_payment(db, current_user, data)
