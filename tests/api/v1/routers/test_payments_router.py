"""Unit tests for payment router endpoints."""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.v1.dependency import (
    Viewer,
    get_access_resolver,
    get_app_services,
    get_current_viewer,
    get_payment_recorder,
    get_stream_service,
    get_stream_store,
    get_token_issuer,
)
from app.api.v1.errors import app_error_handler
from app.api.v1.routers.payments import router
from app.domain.challenge.middleware import ChallengeDefaults
from app.domain.live.stream.stream_domain import StreamService
from app.domain.live.stream.stream_store import StreamStore
from app.domain.payments.access_resolver import AccessResolver
from app.domain.payments.payment_models import (
    AccessDecision,
    AccessReason,
    PaymentResponse,
    RecordResult,
    SessionTokens,
)
from app.domain.payments.payment_recorder import PaymentRecorder
from app.domain.payments.token_issuer import SessionTokenIssuer
from app.schemas import PaymentStatus
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

CREATOR = "CreatorWallet1111111111111111111111111111111"
VIEWER = "ViewerWallet22222222222222222222222222222222"
NETWORK = "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1"


def stream_stub(price: str | None = "5", payout_address: str | None = CREATOR) -> SimpleNamespace:
    return SimpleNamespace(
        stream_id="st_01HZX",
        room_name="room_abc",
        creator_id=CREATOR,
        payout_address=payout_address,
        title="Test Stream",
        price=Decimal(price) if price else None,
        payment_required=price is not None,
    )


def payment_response() -> PaymentResponse:
    return PaymentResponse(
        payment_id="pay_01HZX",
        stream_id="st_01HZX",
        payer_id=VIEWER,
        creator_id=CREATOR,
        amount=Decimal("5"),
        amount_atomic=5_000_000,
        settlement_reference="tx123",
        asset="USDC",
        network=NETWORK,
        status=PaymentStatus.COMPLETED,
        created_at=datetime.now(timezone.utc),
    )


def session_tokens(identity: str = VIEWER, can_publish: bool = False) -> SessionTokens:
    return SessionTokens(
        api_token="api-token",
        room_token="room-token",
        room_name="room_abc",
        identity=identity,
        can_publish=can_publish,
    )


@pytest.fixture
def mock_user() -> Viewer:
    return Viewer(user_id=VIEWER)


@pytest.fixture
def mocks() -> SimpleNamespace:
    return SimpleNamespace(
        resolver=AsyncMock(spec=AccessResolver),
        recorder=AsyncMock(spec=PaymentRecorder),
        streams=AsyncMock(spec=StreamStore),
        stream_service=AsyncMock(spec=StreamService),
        issuer=AsyncMock(spec=SessionTokenIssuer),
    )


@pytest.fixture
def services(demo_config) -> SimpleNamespace:
    return SimpleNamespace(
        cfg=demo_config,
        challenge_defaults=ChallengeDefaults(
            network=NETWORK,
            asset="USDC",
            fallback_pay_to="PlatformFallback",
            default_price=Decimal("1.00"),
        ),
    )


@pytest.fixture
def client(mock_user: Viewer, mocks: SimpleNamespace, services: SimpleNamespace) -> TestClient:
    app = FastAPI()
    app.dependency_overrides[get_current_viewer] = lambda: mock_user
    app.dependency_overrides[get_access_resolver] = lambda: mocks.resolver
    app.dependency_overrides[get_payment_recorder] = lambda: mocks.recorder
    app.dependency_overrides[get_stream_store] = lambda: mocks.streams
    app.dependency_overrides[get_stream_service] = lambda: mocks.stream_service
    app.dependency_overrides[get_token_issuer] = lambda: mocks.issuer
    app.dependency_overrides[get_app_services] = lambda: services
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.include_router(router)
    return TestClient(app)


class TestPaymentStatus:
    def test_denied_shows_price(self, client: TestClient, mocks: SimpleNamespace):
        mocks.resolver.resolve_by_id.return_value = AccessDecision.denied(Decimal("5"))

        response = client.get("/payments/payment_status", params={"stream_id": "st_01HZX"})

        assert response.status_code == 200
        assert response.json()["results"] == {
            "has_access": False,
            "reason": "payment_required",
            "price": 5.0,
            "payment_id": None,
        }
        mocks.resolver.resolve_by_id.assert_called_once_with(VIEWER, "st_01HZX")

    def test_paid(self, client: TestClient, mocks: SimpleNamespace):
        mocks.resolver.resolve_by_id.return_value = AccessDecision.granted(AccessReason.PAID, payment_id="pay_1")

        response = client.get("/payments/payment_status", params={"stream_id": "st_01HZX"})

        assert response.json()["results"]["payment_id"] == "pay_1"


class TestInitiate:
    def test_paid_stream_terms(self, client: TestClient, mocks: SimpleNamespace):
        mocks.streams.get.return_value = stream_stub(price="5")

        response = client.get("/payments/initiate", params={"stream_id": "st_01HZX"})

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["payment_required"] is True
        assert results["price"] == "$5.00"
        assert results["pay_to"] == CREATOR
        assert results["network"] == NETWORK

    def test_stream_without_payout_uses_fallback(self, client: TestClient, mocks: SimpleNamespace):
        mocks.streams.get.return_value = stream_stub(price="0.5", payout_address=None)

        results = client.get("/payments/initiate", params={"stream_id": "st_01HZX"}).json()["results"]

        assert results["pay_to"] == "PlatformFallback"
        assert results["price"] == "$0.50"

    def test_free_stream_has_no_terms(self, client: TestClient, mocks: SimpleNamespace):
        mocks.streams.get.return_value = stream_stub(price=None)

        results = client.get("/payments/initiate", params={"stream_id": "st_01HZX"}).json()["results"]

        assert results["payment_required"] is False
        assert results["price"] is None
        assert results["pay_to"] is None

    def test_unknown_stream(self, client: TestClient, mocks: SimpleNamespace):
        mocks.streams.get.return_value = None

        response = client.get("/payments/initiate", params={"stream_id": "st_missing"})

        assert response.status_code == 404


class TestVerify:
    def test_first_verification(self, client: TestClient, mocks: SimpleNamespace):
        mocks.recorder.record.return_value = RecordResult(payment=payment_response())

        response = client.post(
            "/payments/verify",
            json={"stream_id": "st_01HZX", "transaction_hash": "tx123", "amount": "5"},
        )

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["message"] == "Payment verified"
        assert results["already_verified"] is False
        assert results["payment"]["amount_atomic"] == 5_000_000
        mocks.recorder.record.assert_called_once_with(
            stream_id="st_01HZX",
            payer_id=VIEWER,
            settlement_reference="tx123",
            amount=Decimal("5"),
            asset="USDC",
            network=NETWORK,
        )

    def test_repeat_is_not_an_error(self, client: TestClient, mocks: SimpleNamespace):
        mocks.recorder.record.return_value = RecordResult(payment=payment_response(), already_verified=True)

        response = client.post(
            "/payments/verify",
            json={"stream_id": "st_01HZX", "transaction_hash": "tx123", "amount": "5"},
        )

        assert response.status_code == 200
        assert response.json()["results"]["message"] == "Payment already verified"

    def test_empty_transaction_hash(self, client: TestClient, mocks: SimpleNamespace):
        response = client.post(
            "/payments/verify",
            json={"stream_id": "st_01HZX", "transaction_hash": "", "amount": "5"},
        )

        assert response.status_code == 422
        mocks.recorder.record.assert_not_called()


class TestTokens:
    def test_join_stream_denied(self, client: TestClient, mocks: SimpleNamespace):
        mocks.streams.get.return_value = stream_stub()
        mocks.issuer.issue.side_effect = AppError(
            errcode=AppErrorCode.E_PAYMENT_REQUIRED,
            errmesg="Payment required",
            status_code=HttpStatusCode.PAYMENT_REQUIRED,
            details={"reason": "payment_required", "price": "5"},
        )

        response = client.post("/payments/join_stream", json={"stream_id": "st_01HZX"})

        assert response.status_code == 402
        assert response.json()["details"] == {"reason": "payment_required", "price": "5"}

    def test_join_stream(self, client: TestClient, mocks: SimpleNamespace):
        mocks.streams.get.return_value = stream_stub()
        mocks.issuer.issue.return_value = session_tokens()

        response = client.post("/payments/join_stream", json={"stream_id": "st_01HZX"})

        assert response.status_code == 200
        assert response.json()["results"]["room_token"] == "room-token"

    def test_creator_tokens(self, client: TestClient, mocks: SimpleNamespace, mock_user: Viewer):
        mock_user.user_id = CREATOR
        mocks.stream_service.get_live_stream_for_creator.return_value = stream_stub()
        mocks.issuer.issue.return_value = session_tokens(identity=CREATOR, can_publish=True)

        response = client.get("/payments/creator_tokens")

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["stream_id"] == "st_01HZX"
        assert results["can_publish"] is True
