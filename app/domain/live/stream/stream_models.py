"""Stream domain models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from app.domain.utils.amounts import parse_display_amount


def _validate_price(v: Decimal | None) -> Decimal | None:
    if v is None:
        return v
    return parse_display_amount(v)


class StreamResponse(BaseModel):
    """Stream response model."""

    stream_id: str
    room_name: str
    creator_id: str
    payout_address: str | None = None
    title: str
    description: str | None = None
    category: str | None = None
    thumbnail: str | None = None
    price: Decimal | None = None
    payment_required: bool
    is_live: bool
    viewer_count: int
    created_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None


class LiveStreamResponse(StreamResponse):
    """Live stream enriched with the Room Service participant count."""

    current_viewers: int = 0


class StreamCreateParams(BaseModel):
    """Parameters for creating a stream."""

    creator_id: str
    title: str = Field(min_length=1, max_length=100)
    room_name: str | None = None
    payout_address: str | None = None
    description: str | None = Field(default=None, max_length=500)
    category: str | None = None
    thumbnail: str | None = None
    price: Decimal | None = None

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Decimal | None) -> Decimal | None:
        return _validate_price(v)


class StreamUpdateParams(BaseModel):
    """Parameters for updating a stream.

    Only fields explicitly set are applied; setting `price` to None makes the
    stream free.
    """

    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    category: str | None = None
    thumbnail: str | None = None
    payout_address: str | None = None
    price: Decimal | None = None

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Decimal | None) -> Decimal | None:
        return _validate_price(v)
