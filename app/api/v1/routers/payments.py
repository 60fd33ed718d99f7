from fastapi import APIRouter, Depends, Query

from app.api.v1.dependency import (
    CurrentViewer,
    get_access_resolver,
    get_app_services,
    get_payment_recorder,
    get_stream_service,
    get_stream_store,
    get_token_issuer,
)
from app.api.v1.schemas.base import ApiOut
from app.api.v1.schemas.payment import (
    CreatorTokensOut,
    JoinStreamIn,
    PaymentOut,
    PaymentRequirementsOut,
    PaymentStatusOut,
    SessionTokensOut,
    VerifyPaymentIn,
    VerifyPaymentOut,
)
from app.domain.challenge.middleware import build_requirements
from app.domain.live.stream.stream_domain import StreamService, stream_not_found
from app.domain.live.stream.stream_store import StreamStore
from app.domain.payments.access_resolver import AccessResolver
from app.domain.payments.payment_recorder import PaymentRecorder
from app.domain.payments.token_issuer import SessionTokenIssuer
from app.domain.payments.watch_gate import stream_descriptor
from app.services.app_services import AppServices

router = APIRouter(prefix="/payments")


@router.get("/payment_status")
async def payment_status(
    user: CurrentViewer,
    stream_id: str = Query(..., description="Stream identifier"),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> ApiOut[PaymentStatusOut]:
    """Whether the caller may watch a stream and, if not, what it costs."""
    decision = await resolver.resolve_by_id(user.user_id, stream_id)
    return ApiOut[PaymentStatusOut](results=PaymentStatusOut(**decision.model_dump()))


@router.get("/initiate")
async def initiate_payment(
    stream_id: str = Query(..., description="Stream identifier"),
    streams: StreamStore = Depends(get_stream_store),
    services: AppServices = Depends(get_app_services),
) -> ApiOut[PaymentRequirementsOut]:
    """Payment terms for a stream, so a client can pay before requesting the gated resource."""
    stream = await streams.get(stream_id)
    if not stream:
        raise stream_not_found(stream_id)

    defaults = services.challenge_defaults
    out = PaymentRequirementsOut(
        stream_id=stream.stream_id,
        room_name=stream.room_name,
        payment_required=stream.payment_required,
        network=defaults.network,
        asset=defaults.asset,
        max_timeout_seconds=defaults.max_timeout_seconds,
    )
    if stream.payment_required:
        requirements = build_requirements(stream_descriptor(stream), defaults)
        out.pay_to = requirements.pay_to
        out.price = requirements.price

    return ApiOut[PaymentRequirementsOut](results=out)


@router.post("/verify")
async def verify_payment(
    body: VerifyPaymentIn,
    user: CurrentViewer,
    recorder: PaymentRecorder = Depends(get_payment_recorder),
    services: AppServices = Depends(get_app_services),
) -> ApiOut[VerifyPaymentOut]:
    """Record a settled payment for the caller. Repeating a transaction hash is not an error."""
    result = await recorder.record(
        stream_id=body.stream_id,
        payer_id=user.user_id,
        settlement_reference=body.transaction_hash,
        amount=body.amount,
        asset=body.asset,
        network=body.network or services.cfg.X402_NETWORK,
    )

    message = "Payment already verified" if result.already_verified else "Payment verified"
    return ApiOut[VerifyPaymentOut](
        results=VerifyPaymentOut(
            message=message,
            payment=PaymentOut(**result.payment.model_dump()),
            already_verified=result.already_verified,
        )
    )


@router.post("/join_stream")
async def join_stream(
    body: JoinStreamIn,
    user: CurrentViewer,
    streams: StreamStore = Depends(get_stream_store),
    issuer: SessionTokenIssuer = Depends(get_token_issuer),
) -> ApiOut[SessionTokensOut]:
    """Issue session tokens. Refused with 402 unless the caller has access."""
    stream = await streams.get(body.stream_id)
    if not stream:
        raise stream_not_found(body.stream_id)

    tokens = await issuer.issue(user.user_id, stream)
    return ApiOut[SessionTokensOut](results=SessionTokensOut(**tokens.model_dump()))


@router.get("/creator_tokens")
async def creator_tokens(
    user: CurrentViewer,
    service: StreamService = Depends(get_stream_service),
    issuer: SessionTokenIssuer = Depends(get_token_issuer),
) -> ApiOut[CreatorTokensOut]:
    """Publish-capable tokens for the caller's current live stream."""
    stream = await service.get_live_stream_for_creator(user.user_id)
    tokens = await issuer.issue(user.user_id, stream)
    return ApiOut[CreatorTokensOut](
        results=CreatorTokensOut(stream_id=stream.stream_id, **tokens.model_dump())
    )
