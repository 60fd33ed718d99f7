"""Tests for the Payment Recorder."""

import asyncio
from decimal import Decimal

import pytest

from app.domain.live.stream.stream_store import StreamStore
from app.domain.payments.access_resolver import AccessResolver
from app.domain.payments.ledger_store import LedgerStore
from app.domain.payments.payment_models import AccessReason
from app.domain.payments.payment_recorder import PaymentRecorder
from app.domain.utils.amounts import USDC_DEVNET_MINT, WRAPPED_SOL_MINT
from app.schemas import AnalyticsEvent, AnalyticsEventType, Payment, PaymentStatus, Stream
from app.utils.app_errors import AppError, AppErrorCode
from tests.fixtures.stream_fixtures import CREATOR_WALLET, VIEWER_WALLET

NETWORK = "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1"


async def reload(stream: Stream) -> Stream:
    fresh = await Stream.find_one(Stream.stream_id == stream.stream_id)
    assert fresh is not None
    return fresh


@pytest.mark.usefixtures("clear_collections")
class TestPaymentRecorder:
    @pytest.fixture
    def recorder(self) -> PaymentRecorder:
        return PaymentRecorder(LedgerStore(), StreamStore())

    @pytest.fixture
    def resolver(self) -> AccessResolver:
        return AccessResolver(LedgerStore(), StreamStore())

    async def test_record_creates_payment(self, recorder, make_stream):
        stream = await make_stream(price="0.10")

        result = await recorder.record(stream.stream_id, VIEWER_WALLET, "tx-abc", "0.10", "USDC", NETWORK)

        assert result.already_verified is False
        payment = result.payment
        assert payment.payment_id.startswith("pa_")
        assert payment.stream_id == stream.stream_id
        assert payment.payer_id == VIEWER_WALLET
        assert payment.creator_id == CREATOR_WALLET
        assert payment.amount == Decimal("0.10")
        assert payment.amount_atomic == 100000
        assert payment.asset == "USDC"
        assert payment.asset_mint == USDC_DEVNET_MINT
        assert payment.network == NETWORK
        assert payment.status == PaymentStatus.COMPLETED

        saved = await Payment.find_one(Payment.settlement_reference == "tx-abc")
        assert saved is not None
        assert saved.amount == Decimal("0.10")

    async def test_sol_uses_nine_decimals(self, recorder, make_stream):
        stream = await make_stream(price="1")

        result = await recorder.record(stream.stream_id, VIEWER_WALLET, "tx-sol", Decimal("1.00"), "SOL", NETWORK)

        assert result.payment.amount_atomic == 1_000_000_000
        assert result.payment.asset_mint == WRAPPED_SOL_MINT

    async def test_side_effects_on_first_record(self, recorder, make_stream):
        stream = await make_stream(price="5")

        await recorder.record(stream.stream_id, VIEWER_WALLET, "tx-side", "5", "USDC", NETWORK)

        assert (await reload(stream)).viewer_count == 1
        events = await AnalyticsEvent.find(AnalyticsEvent.stream_id == stream.stream_id).to_list()
        assert len(events) == 1
        assert events[0].event_type == AnalyticsEventType.PAYMENT
        assert events[0].user_id == VIEWER_WALLET
        assert events[0].metadata == {"amount": "5", "settlement_reference": "tx-side"}

    async def test_duplicate_reference_returns_existing(self, recorder, make_stream):
        stream = await make_stream(price="5")

        first = await recorder.record(stream.stream_id, VIEWER_WALLET, "tx-dup", "5", "USDC", NETWORK)
        second = await recorder.record(stream.stream_id, VIEWER_WALLET, "tx-dup", "5", "USDC", NETWORK)

        assert first.already_verified is False
        assert second.already_verified is True
        assert second.payment.payment_id == first.payment.payment_id
        assert await Payment.find(Payment.settlement_reference == "tx-dup").count() == 1
        assert (await reload(stream)).viewer_count == 1

    async def test_concurrent_duplicates_create_one_payment(self, recorder, make_stream):
        stream = await make_stream(price="5")

        results = await asyncio.gather(
            *[
                recorder.record(stream.stream_id, VIEWER_WALLET, "tx-race", "5", "USDC", NETWORK)
                for _ in range(5)
            ]
        )

        assert await Payment.find(Payment.settlement_reference == "tx-race").count() == 1
        assert sum(1 for r in results if not r.already_verified) == 1
        assert len({r.payment.payment_id for r in results}) == 1
        assert (await reload(stream)).viewer_count == 1

    async def test_insert_collision_returns_committed_payment(self, make_stream, monkeypatch):
        stream = await make_stream(price="5")
        ledger = LedgerStore()
        recorder = PaymentRecorder(ledger, StreamStore())
        first = await recorder.record(stream.stream_id, VIEWER_WALLET, "tx-collide", "5", "USDC", NETWORK)

        committed_lookup = ledger.find_by_reference
        lookups: list[str] = []

        async def lookup_before_commit(settlement_reference: str):
            # First lookup sees the ledger as it was before the other submission committed
            lookups.append(settlement_reference)
            if len(lookups) == 1:
                return None
            return await committed_lookup(settlement_reference)

        monkeypatch.setattr(ledger, "find_by_reference", lookup_before_commit)

        second = await recorder.record(stream.stream_id, VIEWER_WALLET, "tx-collide", "5", "USDC", NETWORK)

        assert lookups == ["tx-collide", "tx-collide"]
        assert second.already_verified is True
        assert second.payment.payment_id == first.payment.payment_id
        assert await Payment.find(Payment.settlement_reference == "tx-collide").count() == 1
        assert (await reload(stream)).viewer_count == 1
        assert await AnalyticsEvent.find(AnalyticsEvent.stream_id == stream.stream_id).count() == 1

    async def test_paid_flow_scenario(self, recorder, resolver, make_stream):
        stream = await make_stream(price="5")

        before = await resolver.resolve(VIEWER_WALLET, stream)
        assert before.has_access is False
        assert before.reason == AccessReason.PAYMENT_REQUIRED
        assert before.price == Decimal("5")

        first = await recorder.record(stream.stream_id, VIEWER_WALLET, "tx123", "5", "USDC", NETWORK)

        after = await resolver.resolve(VIEWER_WALLET, stream)
        assert after.has_access is True
        assert after.reason == AccessReason.PAID

        again = await recorder.record(stream.stream_id, VIEWER_WALLET, "tx123", "5", "USDC", NETWORK)
        assert again.already_verified is True
        assert again.payment.payment_id == first.payment.payment_id
        assert again.payment.amount_atomic == first.payment.amount_atomic
        assert (await reload(stream)).viewer_count == 1

    async def test_unknown_stream_is_not_found(self, recorder, beanie_db):
        with pytest.raises(AppError) as exc_info:
            await recorder.record("st_missing", VIEWER_WALLET, "tx-missing", "5", "USDC", NETWORK)

        assert exc_info.value.errcode == AppErrorCode.E_STREAM_NOT_FOUND
        assert await Payment.find_all().count() == 0

    async def test_amount_too_large_to_store_is_rejected(self, recorder, make_stream):
        stream = await make_stream(price="5")

        with pytest.raises(AppError) as exc_info:
            await recorder.record(stream.stream_id, VIEWER_WALLET, "tx-huge", "100000000000000", "USDC", NETWORK)

        assert exc_info.value.errcode == AppErrorCode.E_INVALID_AMOUNT
        assert await Payment.find_all().count() == 0
        assert (await reload(stream)).viewer_count == 0

    @pytest.mark.parametrize("amount", ["-5", "NaN", "Infinity"])
    async def test_invalid_amount_rejected_before_persistence(self, recorder, make_stream, amount):
        stream = await make_stream(price="5")

        with pytest.raises(AppError) as exc_info:
            await recorder.record(stream.stream_id, VIEWER_WALLET, "tx-bad", amount, "USDC", NETWORK)

        assert exc_info.value.errcode == AppErrorCode.E_INVALID_AMOUNT
        assert await Payment.find_all().count() == 0
        assert (await reload(stream)).viewer_count == 0

    async def test_empty_reference_rejected(self, recorder, make_stream):
        stream = await make_stream(price="5")

        with pytest.raises(AppError) as exc_info:
            await recorder.record(stream.stream_id, VIEWER_WALLET, "  ", "5", "USDC", NETWORK)

        assert exc_info.value.errcode == AppErrorCode.E_INVALID_REQUEST
        assert await Payment.find_all().count() == 0
