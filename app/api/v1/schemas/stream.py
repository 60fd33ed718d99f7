from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer

from .serializers import serialize_optional_utc_datetime, serialize_price, serialize_utc_datetime


class CreateStreamIn(BaseModel):
    title: str = Field(min_length=1, max_length=100, description="Title of the stream")
    description: str | None = Field(default=None, max_length=500, description="Description of the stream")
    category: str | None = Field(default=None, description="Stream category")
    thumbnail: str | None = Field(default=None, description="URL of the thumbnail image")
    room_name: str | None = Field(default=None, description="Room name; generated when omitted")
    payout_address: str | None = Field(
        default=None, description="Wallet receiving payments; defaults to the creator's wallet"
    )
    price: Decimal | None = Field(default=None, description="Display price in USD; 0 or null means free")


class StopStreamIn(BaseModel):
    stream_id: str = Field(description="Stream to end")


class UpdateStreamIn(BaseModel):
    stream_id: str = Field(description="Stream to update")
    title: str | None = Field(default=None, min_length=1, max_length=100, description="Title of the stream")
    description: str | None = Field(default=None, max_length=500, description="Description of the stream")
    category: str | None = Field(default=None, description="Stream category")
    thumbnail: str | None = Field(default=None, description="URL of the thumbnail image")
    payout_address: str | None = Field(default=None, description="Wallet receiving payments")
    price: Decimal | None = Field(default=None, description="Display price in USD; 0 or null means free")


class StreamOut(BaseModel):
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

    @field_serializer("price")
    @classmethod
    def serialize_display_price(cls, v: Decimal | None) -> float | None:
        return serialize_price(v)

    @field_serializer("created_at")
    @classmethod
    def serialize_datetime(cls, v: datetime) -> str:
        return serialize_utc_datetime(v)

    @field_serializer("started_at", "ended_at")
    @classmethod
    def serialize_optional_datetime(cls, v: datetime | None) -> str | None:
        return serialize_optional_utc_datetime(v)


class LiveStreamOut(StreamOut):
    current_viewers: int = Field(description="Participants currently in the room")


class ListLiveOut(BaseModel):
    streams: list[LiveStreamOut]
