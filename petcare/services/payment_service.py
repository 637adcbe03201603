"""
Payment reconciliation.

Converts a provider payment proof into a trusted ``payment_status`` change.
The proof is ``(order_id, payment_id, signature)`` where the provider signs
``"{order_id}|{payment_id}"`` with HMAC-SHA256 under the shared key secret.
"""

import hashlib
import hmac
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import Table, and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from petcare.core.clock import Clock, utcnow
from petcare.core.exceptions import (
    AlreadyProcessedException,
    ConfigurationError,
    ConflictException,
    InvalidSignatureException,
    NotFoundException,
    UnauthorizedException,
)
from petcare.core.identity import ActingUser
from petcare.core.redis_client import CacheManager
from petcare.models.appointments import appointments
from petcare.models.orders import orders
from petcare.models.pets import pets
from petcare.schemas.appointments import AppointmentStatus, PaymentStatus
from petcare.schemas.payments import (
    EntityKind,
    PaymentFailureRequest,
    PaymentVerificationRequest,
    PaymentVerificationResponse,
)
from petcare.services import lifecycle
from petcare.services.appointment_service import invalidate_appointment_caches

logger = structlog.get_logger()

_TABLES: dict[EntityKind, Table] = {
    EntityKind.APPOINTMENT: appointments,
    EntityKind.ORDER: orders,
}

_LABELS: dict[EntityKind, str] = {
    EntityKind.APPOINTMENT: "Appointment",
    EntityKind.ORDER: "Order",
}


def sign_payment(secret: str, order_id: str, payment_id: str) -> str:
    """Hex HMAC-SHA256 of ``"{order_id}|{payment_id}"``."""
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class PaymentReconciler:
    """
    Verifies payment proofs and applies them exactly once.

    Constructed once at startup; refuses to exist without a signing secret so
    the process cannot serve unverifiable payments.
    """

    def __init__(
        self,
        secret: str | None,
        cache: CacheManager | None = None,
        clock: Clock = utcnow,
    ):
        """
        Args:
            secret: Provider key secret shared with this service
            cache: Optional cache to invalidate after a state change
            clock: Time source for ``updated_at``

        Raises:
            ConfigurationError: If the secret is missing or blank
        """
        if not secret or not secret.strip():
            raise ConfigurationError(
                "RAZORPAY_KEY_SECRET is not configured; refusing to verify payments"
            )
        self._secret = secret
        self.cache = cache
        self.clock = clock

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Constant-time comparison of the supplied signature against the expected one."""
        expected = sign_payment(self._secret, order_id, payment_id)
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))

    async def _load(self, db: AsyncSession, kind: EntityKind, entity_id: UUID) -> dict[str, Any]:
        table = _TABLES[kind]
        result = await db.execute(select(table).where(table.c.id == entity_id))
        row = result.mappings().first()
        if row is None:
            raise NotFoundException(f"{_LABELS[kind]} not found")
        return dict(row)

    async def _owner_of(self, db: AsyncSession, kind: EntityKind, row: dict[str, Any]) -> UUID:
        if kind == EntityKind.ORDER:
            return row["customer_id"]
        result = await db.execute(select(pets.c.owner_id).where(pets.c.id == row["pet_id"]))
        return result.scalar_one()

    def _invalidate(self, kind: EntityKind, row: dict[str, Any], owner_id: UUID) -> None:
        if kind == EntityKind.APPOINTMENT:
            invalidate_appointment_caches(
                self.cache,
                vet_id=row["vet_id"],
                owner_id=owner_id,
                instants=[row["appointment_time"]],
            )

    async def verify_payment(
        self,
        db: AsyncSession,
        proof: PaymentVerificationRequest,
    ) -> PaymentVerificationResponse:
        """
        Verify a payment proof and mark its target paid.

        The write is conditional on ``payment_status`` still being ``pending``
        so concurrent or replayed proofs apply at most once, and a cancelled
        appointment never becomes paid.

        Args:
            db: Database session
            proof: Provider callback payload

        Returns:
            Verification result

        Raises:
            InvalidSignatureException: If the signature does not match
            NotFoundException: If the target entity does not exist
            AlreadyProcessedException: If the target is already paid
            InvalidStateException: If the appointment was cancelled
            ConflictException: If the target cannot take this payment
        """
        if not self.verify_signature(proof.order_id, proof.payment_id, proof.signature):
            logger.warning(
                "payment_signature_invalid",
                order_id=proof.order_id,
                payment_id=proof.payment_id,
                entity_kind=proof.entity_kind.value,
                entity_id=str(proof.entity_id),
            )
            raise InvalidSignatureException()

        table = _TABLES[proof.entity_kind]
        conditions = [
            table.c.id == proof.entity_id,
            table.c.payment_status == PaymentStatus.PENDING.value,
            or_(
                table.c.payment_reference.is_(None),
                table.c.payment_reference == proof.order_id,
            ),
        ]
        if proof.entity_kind == EntityKind.APPOINTMENT:
            conditions.append(table.c.status != AppointmentStatus.CANCELLED.value)

        stmt = (
            update(table)
            .where(and_(*conditions))
            .values(
                payment_status=PaymentStatus.PAID.value,
                payment_reference=proof.order_id,
                updated_at=self.clock(),
            )
            .returning(table)
        )
        result = await db.execute(stmt)
        updated = result.mappings().first()
        await db.commit()

        label = _LABELS[proof.entity_kind]
        if updated is None:
            current = await self._load(db, proof.entity_kind, proof.entity_id)
            if current["payment_status"] == PaymentStatus.PAID.value:
                logger.info(
                    "payment_already_processed",
                    order_id=proof.order_id,
                    entity_kind=proof.entity_kind.value,
                    entity_id=str(proof.entity_id),
                )
                raise AlreadyProcessedException(f"{label} already paid")
            if (
                proof.entity_kind == EntityKind.APPOINTMENT
                and current["status"] == AppointmentStatus.CANCELLED.value
            ):
                # The provider captured the money; support has to refund it
                logger.warning(
                    "payment_for_cancelled_appointment",
                    order_id=proof.order_id,
                    payment_id=proof.payment_id,
                    entity_id=str(proof.entity_id),
                )
                raise lifecycle.invalid_state("accept payment for", current["status"])
            if current["payment_status"] == PaymentStatus.FAILED.value:
                raise ConflictException(
                    f"{label} payment was marked failed; start a new payment attempt"
                )
            raise ConflictException(
                f"Payment proof does not match the payment started for this {label.lower()}"
            )

        updated_row = dict(updated)
        owner_id = await self._owner_of(db, proof.entity_kind, updated_row)
        self._invalidate(proof.entity_kind, updated_row, owner_id)

        logger.info(
            "payment_verified",
            order_id=proof.order_id,
            payment_id=proof.payment_id,
            entity_kind=proof.entity_kind.value,
            entity_id=str(proof.entity_id),
        )
        return PaymentVerificationResponse(
            verified=True,
            entity_kind=proof.entity_kind,
            entity_id=proof.entity_id,
        )

    async def fail_payment(
        self,
        db: AsyncSession,
        user: ActingUser,
        request: PaymentFailureRequest,
    ) -> None:
        """
        Mark a pending payment attempt as failed so the client can retry.

        Raises:
            NotFoundException: If the target entity does not exist
            UnauthorizedException: If the user is not the paying customer
            AlreadyProcessedException: If the target is already paid
        """
        kind = request.entity_kind
        row = await self._load(db, kind, request.entity_id)
        owner_id = await self._owner_of(db, kind, row)

        if owner_id != user.id:
            raise UnauthorizedException(f"Unauthorized to update payment for this {kind.value}")

        table = _TABLES[kind]
        stmt = (
            update(table)
            .where(
                and_(
                    table.c.id == request.entity_id,
                    table.c.payment_status == PaymentStatus.PENDING.value,
                )
            )
            .values(payment_status=PaymentStatus.FAILED.value, updated_at=self.clock())
            .returning(table.c.id)
        )
        result = await db.execute(stmt)
        changed = result.first() is not None
        await db.commit()

        if not changed:
            current = await self._load(db, kind, request.entity_id)
            if current["payment_status"] == PaymentStatus.PAID.value:
                raise AlreadyProcessedException(f"{_LABELS[kind]} already paid")
            # Already failed; nothing to do
            return

        self._invalidate(kind, row, owner_id)
        logger.info(
            "payment_marked_failed",
            entity_kind=kind.value,
            entity_id=str(request.entity_id),
        )
