"""Analytics event ODM schema."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from beanie import Document
from pydantic import Field
from pymongo import IndexModel


class AnalyticsEventType(StrEnum):
    VIEW = "view"
    PAYMENT = "payment"
    JOIN = "join"
    LEAVE = "leave"


class AnalyticsEvent(Document):
    stream_id: str
    user_id: str | None = None
    event_type: AnalyticsEventType
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime

    class Settings:
        name = "analytics_event"
        indexes = [
            IndexModel([("stream_id", 1), ("timestamp", -1)], name="stream_timestamp"),
        ]
