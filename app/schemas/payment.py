"""Payment ODM schema."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from beanie import Document, Indexed
from pydantic import field_validator
from pymongo import IndexModel

from .schema_utils import MongoDecimal, parse_mongo_datetime


class PaymentStatus(StrEnum):
    COMPLETED = "completed"


class Payment(Document):
    """A settled payment. Immutable once inserted.

    `settlement_reference` carries a unique index: it is the idempotency key
    for recording, and the index is what closes the race between two
    concurrent submissions of the same proof.
    """

    payment_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    settlement_reference: Indexed(str, unique=True)  # type: ignore[valid-type]

    stream_id: str
    payer_id: str
    creator_id: str

    amount: MongoDecimal
    amount_atomic: int

    asset: str
    asset_mint: str | None = None
    network: str
    status: PaymentStatus = PaymentStatus.COMPLETED

    created_at: datetime

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    class Settings:
        name = "payment"
        indexes = [
            IndexModel(
                [("stream_id", 1), ("payer_id", 1), ("status", 1)],
                name="stream_payer_status",
            ),
            IndexModel([("creator_id", 1), ("created_at", -1)], name="creator_created_at"),
        ]
