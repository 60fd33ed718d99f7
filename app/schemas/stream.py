"""Stream ODM schema."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from beanie import Document, Indexed
from pydantic import field_validator, model_validator
from pymongo import IndexModel

from .schema_utils import MongoDecimal, parse_mongo_datetime, parse_mongo_decimal


class Stream(Document):
    """A creator's broadcast and its viewing terms."""

    stream_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    room_name: Indexed(str, unique=True)  # type: ignore[valid-type]
    creator_id: Indexed(str)  # type: ignore[valid-type]

    # Where payments for this stream are sent; falls back to the platform address
    payout_address: str | None = None

    # Descriptor fields
    title: str
    description: str | None = None
    category: str | None = None
    thumbnail: str | None = None

    # Display price in currency units (e.g. dollars). None means free.
    price: MongoDecimal | None = None
    payment_required: bool = False

    is_live: bool = True
    viewer_count: int = 0

    # Timestamps
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @field_validator("created_at", "updated_at", "started_at", "ended_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    @model_validator(mode="before")
    @classmethod
    def _derive_payment_required(cls, data: Any) -> Any:
        # payment_required is never set independently of price
        if isinstance(data, dict):
            price = parse_mongo_decimal(data.get("price"))
            data = {**data, "payment_required": price is not None and Decimal(str(price)) > 0}
        return data

    class Settings:
        name = "stream"
        indexes = [
            IndexModel([("is_live", 1), ("viewer_count", -1)], name="is_live_viewer_count"),
        ]
