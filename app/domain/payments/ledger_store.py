"""Ledger Store: durable record of completed payments.

The unique index on `Payment.settlement_reference` is the only concurrency
control relied upon. Callers never check-then-insert to enforce uniqueness;
they insert and treat `DuplicateSettlementError` as "already recorded".
"""

from typing import Any

from loguru import logger
from pymongo.errors import DuplicateKeyError

from app.schemas import AnalyticsEvent, AnalyticsEventType, Payment, PaymentStatus

from .payment_models import utc_now


class DuplicateSettlementError(Exception):
    """A payment with this settlement reference already exists."""

    def __init__(self, settlement_reference: str):
        super().__init__(f"Settlement already recorded: {settlement_reference}")
        self.settlement_reference = settlement_reference


class LedgerStore:
    async def find_by_reference(self, settlement_reference: str) -> Payment | None:
        return await Payment.find_one(Payment.settlement_reference == settlement_reference)

    async def find_completed(self, stream_id: str, payer_id: str) -> Payment | None:
        return await Payment.find_one(
            Payment.stream_id == stream_id,
            Payment.payer_id == payer_id,
            Payment.status == PaymentStatus.COMPLETED,
        )

    async def insert(self, payment: Payment) -> Payment:
        """Insert a payment row.

        Raises:
            DuplicateSettlementError: The settlement reference is already recorded.
        """
        try:
            await payment.insert()
        except DuplicateKeyError:
            # payment_id is a ULID; the only unique key that can collide is the reference
            raise DuplicateSettlementError(payment.settlement_reference) from None
        return payment

    async def record_event(
        self,
        stream_id: str,
        event_type: AnalyticsEventType,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        event = AnalyticsEvent(
            stream_id=stream_id,
            user_id=user_id,
            event_type=event_type,
            metadata=metadata or {},
            timestamp=utc_now(),
        )
        await event.insert()
        logger.debug(f"Analytics event {event_type} stream={stream_id} user={user_id}")
