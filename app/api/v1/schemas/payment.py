from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer

from app.domain.payments.payment_models import AccessReason

from .serializers import serialize_price, serialize_utc_datetime


class PaymentStatusOut(BaseModel):
    has_access: bool
    reason: AccessReason
    price: Decimal | None = None
    payment_id: str | None = None

    @field_serializer("price")
    @classmethod
    def serialize_display_price(cls, v: Decimal | None) -> float | None:
        return serialize_price(v)


class PaymentRequirementsOut(BaseModel):
    """Terms a viewer must pay to watch a stream."""

    stream_id: str
    room_name: str
    payment_required: bool
    scheme: str = "exact"
    network: str
    pay_to: str | None = None
    price: str | None = Field(default=None, description="Display price, e.g. $5.00")
    asset: str
    max_timeout_seconds: int


class VerifyPaymentIn(BaseModel):
    stream_id: str = Field(description="Stream the payment was made for")
    transaction_hash: str = Field(min_length=1, description="Settlement transaction reference")
    amount: Decimal = Field(description="Display amount paid")
    asset: str = Field(default="USDC", description="Asset symbol")
    network: str | None = Field(default=None, description="Network identifier; defaults to the platform network")


class PaymentOut(BaseModel):
    payment_id: str
    stream_id: str
    payer_id: str
    creator_id: str
    amount: Decimal
    amount_atomic: int
    settlement_reference: str
    asset: str
    network: str
    status: str
    created_at: datetime

    @field_serializer("amount")
    @classmethod
    def serialize_amount(cls, v: Decimal) -> float | None:
        return serialize_price(v)

    @field_serializer("created_at")
    @classmethod
    def serialize_datetime(cls, v: datetime) -> str:
        return serialize_utc_datetime(v)


class VerifyPaymentOut(BaseModel):
    message: str
    payment: PaymentOut
    already_verified: bool


class JoinStreamIn(BaseModel):
    stream_id: str = Field(description="Stream to join")


class SessionTokensOut(BaseModel):
    api_token: str
    room_token: str
    room_name: str
    identity: str
    server_url: str | None = None
    can_publish: bool


class CreatorTokensOut(SessionTokensOut):
    stream_id: str


class WatchOut(BaseModel):
    stream_id: str
    access: PaymentStatusOut
    tokens: SessionTokensOut
    transaction: str | None = Field(default=None, description="Settlement reference when this request paid")
