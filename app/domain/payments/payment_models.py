"""Payment domain models."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel

from app.schemas import Payment, PaymentStatus


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AccessReason(StrEnum):
    CREATOR = "creator"
    FREE = "free"
    PAID = "paid"
    PAYMENT_REQUIRED = "payment_required"


class AccessDecision(BaseModel):
    """Outcome of an access check. Derived per request, never persisted."""

    has_access: bool
    reason: AccessReason
    price: Decimal | None = None
    payment_id: str | None = None

    @classmethod
    def granted(cls, reason: AccessReason, payment_id: str | None = None) -> "AccessDecision":
        return cls(has_access=True, reason=reason, payment_id=payment_id)

    @classmethod
    def denied(cls, price: Decimal) -> "AccessDecision":
        return cls(has_access=False, reason=AccessReason.PAYMENT_REQUIRED, price=price)


class PaymentResponse(BaseModel):
    payment_id: str
    stream_id: str
    payer_id: str
    creator_id: str
    amount: Decimal
    amount_atomic: int
    settlement_reference: str
    asset: str
    asset_mint: str | None = None
    network: str
    status: PaymentStatus
    created_at: datetime

    @classmethod
    def from_document(cls, payment: Payment) -> "PaymentResponse":
        return cls(**payment.model_dump(exclude={"id"}))


class RecordResult(BaseModel):
    """Result of recording a settlement.

    `already_verified` is True when the settlement reference had been recorded
    before; `payment` is then the existing row, unchanged.
    """

    payment: PaymentResponse
    already_verified: bool = False


class SessionTokens(BaseModel):
    api_token: str
    room_token: str
    room_name: str
    identity: str
    server_url: str | None = None
    can_publish: bool = False
