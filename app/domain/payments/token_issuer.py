"""Session Token Issuer: mints credentials only for viewers the resolver admits."""

from datetime import timedelta

import jwt
from loguru import logger

from app.schemas import Stream
from app.services.integrations.livekit_service import LivekitService
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .access_resolver import AccessResolver
from .payment_models import AccessReason, SessionTokens, utc_now

API_TOKEN_ALGORITHM = "HS256"


class SessionTokenIssuer:
    """Issues an api token and a room token for a (viewer, stream) pair.

    Access is re-resolved on every call; the issuer never trusts an earlier
    decision. Issuing tokens has no side effects on counters or analytics.
    """

    def __init__(
        self,
        resolver: AccessResolver,
        room_service: LivekitService,
        api_token_secret: str | None,
        api_token_ttl_seconds: int = 6 * 60 * 60,
        demo_mode: bool = False,
    ):
        self._resolver = resolver
        self._rooms = room_service
        self._secret = api_token_secret
        self._ttl = api_token_ttl_seconds
        self._demo_mode = demo_mode

    async def issue(self, viewer_id: str, stream: Stream) -> SessionTokens:
        """Issue session tokens.

        Raises:
            AppError: E_PAYMENT_REQUIRED (402) when the viewer has no access;
                `details` carries the reason and the price to pay.
        """
        decision = await self._resolver.resolve(viewer_id, stream)
        if not decision.has_access:
            logger.info(f"Token refused: viewer={viewer_id} stream={stream.stream_id} reason={decision.reason}")
            raise AppError(
                errcode=AppErrorCode.E_PAYMENT_REQUIRED,
                errmesg="Payment required to join this stream",
                status_code=HttpStatusCode.PAYMENT_REQUIRED,
                details={"reason": str(decision.reason), "price": str(decision.price)},
            )

        can_publish = decision.reason == AccessReason.CREATOR
        room_token = self._rooms.create_access_token(
            identity=viewer_id,
            room=stream.room_name,
            can_publish=can_publish,
            can_subscribe=True,
            can_publish_data=True,
        )
        api_token = self._create_api_token(viewer_id, stream.room_name)

        logger.info(
            f"Tokens issued: viewer={viewer_id} stream={stream.stream_id} "
            f"reason={decision.reason} can_publish={can_publish}"
        )
        return SessionTokens(
            api_token=api_token,
            room_token=room_token,
            room_name=stream.room_name,
            identity=viewer_id,
            server_url=self._rooms.server_url,
            can_publish=can_publish,
        )

    def _create_api_token(self, identity: str, room_name: str) -> str:
        if not self._secret:
            if self._demo_mode:
                return f"DEMO_API_TOKEN::{identity}::{room_name}"
            raise AppError(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg="API token secret is not configured",
                status_code=HttpStatusCode.INTERNAL_ERROR,
            )

        now = utc_now()
        payload = {
            "sub": identity,
            "room_name": room_name,
            "iat": now,
            "exp": now + timedelta(seconds=self._ttl),
        }
        return jwt.encode(payload, self._secret, algorithm=API_TOKEN_ALGORITHM)

    def decode_api_token(self, token: str) -> dict | None:
        """Return the claims of a valid api token, or None."""
        if not self._secret:
            return None
        try:
            return jwt.decode(token, self._secret, algorithms=[API_TOKEN_ALGORITHM])
        except jwt.PyJWTError as e:
            logger.debug(f"Invalid api token: {e}")
            return None
