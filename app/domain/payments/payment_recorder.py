"""Payment Recorder: persists a claimed settlement exactly once."""

from decimal import Decimal

from loguru import logger
from pymongo.errors import PyMongoError

from app.domain.live.stream.stream_domain import stream_not_found
from app.domain.live.stream.stream_store import StreamStore
from app.domain.utils.amounts import get_asset, parse_display_amount, to_atomic_units
from app.domain.utils.idgen import new_payment_id
from app.schemas import AnalyticsEventType, Payment, PaymentStatus
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .ledger_store import DuplicateSettlementError, LedgerStore
from .payment_models import PaymentResponse, RecordResult, utc_now


class PaymentRecorder:
    """Sole writer of `Payment` rows.

    Recording the same settlement reference any number of times, sequentially
    or concurrently, leaves exactly one row; every caller gets a successful
    result, with `already_verified=True` for all but the first.
    """

    def __init__(self, ledger: LedgerStore, streams: StreamStore):
        self._ledger = ledger
        self._streams = streams

    async def record(
        self,
        stream_id: str,
        payer_id: str,
        settlement_reference: str,
        amount: Decimal | int | float | str,
        asset: str,
        network: str,
    ) -> RecordResult:
        """Record a settled payment for a stream.

        Raises:
            AppError: E_INVALID_AMOUNT for a negative or non-finite amount,
                E_INVALID_REQUEST for an empty settlement reference,
                E_STREAM_NOT_FOUND for an unknown stream. Nothing is persisted
                in any of these cases.
        """
        display_amount = parse_display_amount(amount)
        settlement_reference = settlement_reference.strip()
        if not settlement_reference:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="Settlement reference is required",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

        existing = await self._ledger.find_by_reference(settlement_reference)
        if existing:
            logger.info(f"Payment already verified: reference={settlement_reference}")
            return RecordResult(
                payment=PaymentResponse.from_document(existing), already_verified=True
            )

        stream = await self._streams.get(stream_id)
        if not stream:
            raise stream_not_found(stream_id)

        asset_info = get_asset(asset)
        payment = Payment(
            payment_id=new_payment_id(),
            settlement_reference=settlement_reference,
            stream_id=stream.stream_id,
            payer_id=payer_id,
            creator_id=stream.creator_id,
            amount=display_amount,
            amount_atomic=to_atomic_units(display_amount, asset_info.decimals),
            asset=asset_info.symbol,
            asset_mint=asset_info.mint,
            network=network,
            status=PaymentStatus.COMPLETED,
            created_at=utc_now(),
        )

        try:
            await self._ledger.insert(payment)
        except DuplicateSettlementError:
            # Lost the race against a concurrent submission of the same reference
            winner = await self._ledger.find_by_reference(settlement_reference)
            if winner is None:
                raise
            logger.info(f"Payment already verified (concurrent): reference={settlement_reference}")
            return RecordResult(payment=PaymentResponse.from_document(winner), already_verified=True)

        logger.info(
            f"Payment recorded: payment_id={payment.payment_id} stream={stream.stream_id} "
            f"payer={payer_id} amount={display_amount} {asset_info.symbol} "
            f"atomic={payment.amount_atomic} reference={settlement_reference}"
        )

        await self._enrich(payment)

        return RecordResult(payment=PaymentResponse.from_document(payment))

    async def _enrich(self, payment: Payment) -> None:
        """Viewer counter and analytics event. Best effort: the payment row is the record."""
        try:
            await self._streams.increment_viewer_count(payment.stream_id)
            await self._ledger.record_event(
                stream_id=payment.stream_id,
                event_type=AnalyticsEventType.PAYMENT,
                user_id=payment.payer_id,
                metadata={
                    "amount": str(payment.amount),
                    "settlement_reference": payment.settlement_reference,
                },
            )
        except PyMongoError as e:
            logger.warning(f"Post-payment enrichment failed for {payment.payment_id}: {e}")
