"""Tests for the facilitator HTTP client."""

import json

import httpx
import pytest

from app.domain.challenge.challenge_models import PaymentRequirements
from app.domain.challenge.facilitator import FacilitatorClient, FacilitatorUnavailableError
from app.utils.app_errors import AppErrorCode

REQUIREMENTS = PaymentRequirements(
    network="solana:devnet",
    pay_to="CreatorWallet",
    price="$5.00",
    asset="USDC",
    max_timeout_seconds=300,
)
PAYLOAD = {"x402Version": 2, "payload": {"transaction": "signed"}}


def make_client(handler) -> FacilitatorClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FacilitatorClient("https://facilitator.test/", http_client, timeout=2.0)


async def test_verify_posts_protocol_body():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"isValid": True, "payer": "PayerWallet"})

    result = await make_client(handler).verify(PAYLOAD, REQUIREMENTS)

    assert result.is_valid is True
    assert result.payer == "PayerWallet"
    [request] = requests
    assert str(request.url) == "https://facilitator.test/verify"
    assert json.loads(request.content) == {
        "x402Version": 2,
        "paymentPayload": PAYLOAD,
        "paymentRequirements": {
            "scheme": "exact",
            "network": "solana:devnet",
            "payTo": "CreatorWallet",
            "price": "$5.00",
            "asset": "USDC",
            "maxTimeoutSeconds": 300,
        },
    }


async def test_settle_success():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"success": True, "transaction": "5xYz", "network": "solana:devnet", "payer": "PayerWallet"}
        )

    result = await make_client(handler).settle(PAYLOAD, REQUIREMENTS)

    assert result.success is True
    assert result.transaction == "5xYz"


async def test_client_error_without_verdict_is_invalid():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "malformed payload"})

    result = await make_client(handler).verify(PAYLOAD, REQUIREMENTS)

    assert result.is_valid is False
    assert result.invalid_reason == "malformed payload"


async def test_settle_rejection_without_verdict_is_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={})

    result = await make_client(handler).settle(PAYLOAD, REQUIREMENTS)

    assert result.success is False
    assert result.error_reason == "settle rejected (422)"


@pytest.mark.parametrize(
    "outcome",
    [
        httpx.ConnectTimeout("timed out"),
        httpx.ConnectError("connection refused"),
        httpx.Response(503, text="unavailable"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
async def test_unusable_answers_are_unavailable(outcome):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    with pytest.raises(FacilitatorUnavailableError) as exc_info:
        await make_client(handler).verify(PAYLOAD, REQUIREMENTS)

    assert exc_info.value.errcode == AppErrorCode.E_FACILITATOR_UNAVAILABLE
    assert exc_info.value.status_code == 503
    assert calls == 1
