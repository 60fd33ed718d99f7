"""Binds the Challenge Middleware to streams: per-request terms and settlement recording."""

from fastapi import Request
from loguru import logger

from app.domain.challenge.challenge_models import ResourceDescriptor, SettleContext
from app.domain.live.stream.stream_store import StreamStore
from app.domain.utils.amounts import parse_display_amount
from app.schemas import Stream
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .access_resolver import AccessResolver
from .payment_recorder import PaymentRecorder
from .token_issuer import SessionTokenIssuer

WALLET_ADDRESS_HEADER = "X-Wallet-Address"


def viewer_id_from_request(request: Request, issuer: SessionTokenIssuer) -> str | None:
    """Caller identity: the wallet address header, else the subject of a Bearer api token."""
    wallet = request.headers.get(WALLET_ADDRESS_HEADER, "").strip()
    if wallet:
        return wallet

    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        claims = issuer.decode_api_token(token.strip())
        if claims and claims.get("sub"):
            return claims["sub"]
    return None


def stream_descriptor(stream: Stream, viewer_id: str | None = None) -> ResourceDescriptor:
    return ResourceDescriptor(
        resource_id=f"stream:{stream.stream_id}",
        price=stream.price,
        pay_to=stream.payout_address,
        description=f"Access to live stream: {stream.title}",
        stream_id=stream.stream_id,
        payer_id=viewer_id,
    )


class StreamWatchGate:
    """Descriptor resolver and after-settle hook for `/watch/{room_name}`.

    A request is gated only when it targets a known stream the caller cannot
    already watch. Unknown streams pass through so the handler can answer 404.
    """

    def __init__(
        self,
        streams: StreamStore,
        resolver: AccessResolver,
        recorder: PaymentRecorder,
        issuer: SessionTokenIssuer,
    ):
        self._streams = streams
        self._resolver = resolver
        self._recorder = recorder
        self._issuer = issuer

    async def resolve_descriptor(self, request: Request, path_params: dict[str, str]) -> ResourceDescriptor | None:
        room_name = path_params.get("room_name", "")
        stream = await self._streams.get_by_room(room_name)
        if stream is None or not stream.payment_required:
            return None

        viewer_id = viewer_id_from_request(request, self._issuer)
        if viewer_id:
            decision = await self._resolver.resolve(viewer_id, stream)
            if decision.has_access:
                return None

        return stream_descriptor(stream, viewer_id)

    async def record_settlement(self, ctx: SettleContext) -> None:
        descriptor = ctx.descriptor
        settlement = ctx.settlement
        if not descriptor.stream_id or settlement is None:
            return

        payer_id = ctx.payer
        if not payer_id or not settlement.transaction:
            logger.error(
                f"Settled payment for {descriptor.resource_id} is missing payer or transaction: "
                f"payer={payer_id} transaction={settlement.transaction}"
            )
            raise AppError(
                errcode=AppErrorCode.E_INVALID_PAYMENT,
                errmesg="Facilitator settlement is missing payer or transaction reference",
                status_code=HttpStatusCode.BAD_GATEWAY,
            )

        result = await self._recorder.record(
            stream_id=descriptor.stream_id,
            payer_id=payer_id,
            settlement_reference=settlement.transaction,
            amount=parse_display_amount(ctx.requirements.price),
            asset=ctx.requirements.asset,
            network=settlement.network or ctx.requirements.network,
        )
        if result.already_verified:
            logger.info(f"Settlement {settlement.transaction} was already recorded")
