from typing import Annotated

from fastapi import Depends, Request
from loguru import logger
from pydantic import BaseModel

from app.domain.challenge.challenge_models import SettleResponse
from app.domain.live.stream.stream_domain import StreamService
from app.domain.live.stream.stream_store import StreamStore
from app.domain.payments.access_resolver import AccessResolver
from app.domain.payments.payment_recorder import PaymentRecorder
from app.domain.payments.token_issuer import SessionTokenIssuer
from app.domain.payments.watch_gate import viewer_id_from_request
from app.services.app_services import AppServices
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


class Viewer(BaseModel):
    """The caller, identified by wallet address."""

    user_id: str


def get_app_services(request: Request) -> AppServices:
    return request.app.state.services


def get_stream_service(request: Request) -> StreamService:
    return get_app_services(request).stream_service


def get_stream_store(request: Request) -> StreamStore:
    return get_app_services(request).stream_store


def get_access_resolver(request: Request) -> AccessResolver:
    return get_app_services(request).access_resolver


def get_payment_recorder(request: Request) -> PaymentRecorder:
    return get_app_services(request).payment_recorder


def get_token_issuer(request: Request) -> SessionTokenIssuer:
    return get_app_services(request).token_issuer


async def get_optional_viewer(
    request: Request, issuer: SessionTokenIssuer = Depends(get_token_issuer)
) -> Viewer | None:
    # Do not log request headers here (may include the api token).
    user_id = viewer_id_from_request(request, issuer)
    if not user_id:
        return None
    logger.debug("Identified viewer: {}", user_id)
    return Viewer(user_id=user_id)


async def get_current_viewer(viewer: Viewer | None = Depends(get_optional_viewer)) -> Viewer:
    if viewer is None:
        raise AppError(
            errcode=AppErrorCode.E_UNAUTHENTICATED,
            errmesg="Wallet address required",
            status_code=HttpStatusCode.UNAUTHORIZED,
        )
    return viewer


def get_settlement(request: Request) -> SettleResponse | None:
    """Settlement attached by the payment challenge middleware, if this request paid."""
    return getattr(request.state, "settlement", None)


def get_settled_payer(request: Request) -> str | None:
    """Payer the payment was recorded under, if this request paid."""
    return getattr(request.state, "payer_id", None)


CurrentViewer = Annotated[Viewer, Depends(get_current_viewer)]
OptionalViewer = Annotated[Viewer | None, Depends(get_optional_viewer)]
Settlement = Annotated[SettleResponse | None, Depends(get_settlement)]
SettledPayer = Annotated[str | None, Depends(get_settled_payer)]
