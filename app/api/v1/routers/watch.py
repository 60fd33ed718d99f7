"""Payment-gated watch endpoint.

Requests reach this handler only after the payment challenge middleware has
let them through: the stream is free, the caller already has access, or the
request carried a proof that was just settled and recorded.
"""

from fastapi import APIRouter, Depends

from app.api.v1.dependency import (
    OptionalViewer,
    SettledPayer,
    Settlement,
    get_access_resolver,
    get_stream_store,
    get_token_issuer,
)
from app.api.v1.schemas.base import ApiOut
from app.api.v1.schemas.payment import PaymentStatusOut, SessionTokensOut, WatchOut
from app.domain.live.stream.stream_domain import stream_not_found
from app.domain.live.stream.stream_store import StreamStore
from app.domain.payments.access_resolver import AccessResolver
from app.domain.payments.token_issuer import SessionTokenIssuer
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

router = APIRouter(prefix="/watch")


@router.get("/{room_name}")
async def watch(
    room_name: str,
    viewer: OptionalViewer,
    settlement: Settlement,
    payer_id: SettledPayer,
    streams: StreamStore = Depends(get_stream_store),
    resolver: AccessResolver = Depends(get_access_resolver),
    issuer: SessionTokenIssuer = Depends(get_token_issuer),
) -> ApiOut[WatchOut]:
    stream = await streams.get_by_room(room_name)
    if not stream:
        raise stream_not_found(room_name)

    viewer_id = viewer.user_id if viewer else payer_id
    if not viewer_id:
        raise AppError(
            errcode=AppErrorCode.E_UNAUTHENTICATED,
            errmesg="Wallet address required",
            status_code=HttpStatusCode.UNAUTHORIZED,
        )

    decision = await resolver.resolve(viewer_id, stream)
    tokens = await issuer.issue(viewer_id, stream)

    return ApiOut[WatchOut](
        results=WatchOut(
            stream_id=stream.stream_id,
            access=PaymentStatusOut(**decision.model_dump()),
            tokens=SessionTokensOut(**tokens.model_dump()),
            transaction=settlement.transaction if settlement else None,
        )
    )
