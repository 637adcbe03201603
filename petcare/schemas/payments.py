"""Payment verification schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EntityKind(str, Enum):
    """What a payment was made for."""

    APPOINTMENT = "appointment"
    ORDER = "order"


class PaymentVerificationRequest(BaseModel):
    """
    Payment proof as delivered by the provider callback.

    The provider's own field names are accepted as aliases.
    """

    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., min_length=1, alias="razorpay_order_id")
    payment_id: str = Field(..., min_length=1, alias="razorpay_payment_id")
    signature: str = Field(..., min_length=1, alias="razorpay_signature")
    entity_id: UUID
    entity_kind: EntityKind = Field(..., alias="entity_type")


class PaymentVerificationResponse(BaseModel):
    """Result of a successful verification."""

    verified: bool
    entity_kind: EntityKind
    entity_id: UUID


class PaymentFailureRequest(BaseModel):
    """Mark a pending payment attempt as failed."""

    model_config = ConfigDict(populate_by_name=True)

    entity_id: UUID
    entity_kind: EntityKind = Field(..., alias="entity_type")
