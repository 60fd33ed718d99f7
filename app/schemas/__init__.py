"""Beanie ODM schemas for MongoDB collections."""

from .analytics_event import AnalyticsEvent, AnalyticsEventType
from .init import DOCUMENT_MODELS, init_beanie_odm
from .payment import Payment, PaymentStatus
from .stream import Stream

__all__ = [
    "AnalyticsEvent",
    "AnalyticsEventType",
    "DOCUMENT_MODELS",
    "Payment",
    "PaymentStatus",
    "Stream",
    "init_beanie_odm",
]
