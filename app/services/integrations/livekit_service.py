"""LiveKit helper service.

Thin wrapper around the `livekit-api` package. LiveKit is the Room Service:
it admits participants presenting a room token and reports which rooms are
currently occupied. Media is never inspected here.

Usage:
    livekit = LivekitService(get_app_environ_config())

    token = livekit.create_access_token(
        identity="viewer-wallet",
        room="room_01j...",
        can_publish=False,
    )

    rooms = await livekit.list_rooms()
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from livekit import api
from livekit.api.twirp_client import TwirpError, TwirpErrorCode
from loguru import logger
from pydantic import BaseModel

from app.app_config import AppEnvironConfig
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


class RoomOccupancy(BaseModel):
    """A room as reported by the Room Service host listing."""

    room_name: str
    participant_count: int


class LivekitService:
    """Service wrapper for LiveKit server SDK (livekit-api package).

    This service provides specific methods for LiveKit operations to make
    usage patterns explicit and discoverable.
    """

    def __init__(self, cfg: AppEnvironConfig) -> None:
        self._cfg = cfg
        self._demo_mode = cfg.DEMO_MODE
        logger.info("LivekitService initialized (DEMO_MODE={})", self._demo_mode)

    @property
    def server_url(self) -> str | None:
        return self._cfg.LIVEKIT_URL

    @asynccontextmanager
    async def _get_api_client(self) -> AsyncIterator[api.LiveKitAPI]:
        """Internal method to get LiveKit API client.

        This is private to force callers to use specific methods.
        """
        url = self._cfg.LIVEKIT_URL
        if not url:
            logger.error("LIVEKIT_URL not configured")
            raise AppError(
                errcode=AppErrorCode.E_ROOM_SERVICE_ERROR,
                errmesg="RTC provider URL must be configured. Set it in env.local or environment variables.",
                status_code=HttpStatusCode.INTERNAL_ERROR,
            )

        async with api.LiveKitAPI(
            url,
            api_key=self._cfg.LIVEKIT_API_KEY,
            api_secret=self._cfg.LIVEKIT_API_SECRET,
        ) as lkapi:
            yield lkapi

    async def list_rooms(self) -> list[RoomOccupancy]:
        """Host listing of all rooms currently known to the Room Service.

        The result is unordered.
        """
        if self._demo_mode:
            logger.info("LivekitService DEMO_MODE=true: list_rooms returns [] (stub)")
            return []

        async with self._get_api_client() as lkapi:
            response = await lkapi.room.list_rooms(api.ListRoomsRequest())
            return [
                RoomOccupancy(room_name=room.name, participant_count=room.num_participants)
                for room in response.rooms
            ]

    async def create_room(self, room_name: str, metadata: str | None = None) -> None:
        if self._demo_mode:
            logger.info(f"LivekitService DEMO_MODE=true: create_room {room_name} skipped (stub)")
            return

        logger.info(f"Creating LiveKit room: room_name={room_name}")
        async with self._get_api_client() as lkapi:
            room = await lkapi.room.create_room(
                api.CreateRoomRequest(
                    name=room_name,
                    metadata=metadata or "",
                    empty_timeout=self._cfg.LIVEKIT_EMPTY_TIMEOUT,
                    max_participants=self._cfg.MAX_PARTICIPANTS_LIMIT,
                )
            )
            logger.debug(f"Successfully created LiveKit room: name={room.name}, sid={room.sid}")

    async def delete_room(self, room_name: str) -> None:
        """Delete a room; a room that no longer exists is not an error."""
        if self._demo_mode:
            logger.info(f"LivekitService DEMO_MODE=true: delete_room {room_name} skipped (stub)")
            return

        logger.info(f"Deleting LiveKit room: room_name={room_name}")
        async with self._get_api_client() as lkapi:
            try:
                await lkapi.room.delete_room(api.DeleteRoomRequest(room=room_name))
            except TwirpError as e:
                if e.code == TwirpErrorCode.NOT_FOUND or "does not exist" in e.message:
                    logger.info(f"LiveKit room already deleted or not found: name={room_name}")
                else:
                    raise

    def create_access_token(
        self,
        identity: str,
        room: str,
        name: str | None = None,
        can_publish: bool = False,
        can_subscribe: bool = True,
        can_publish_data: bool = True,
    ) -> str:
        """Create a LiveKit JWT room token.

        Args:
            identity: Unique identity for the participant
            room: Room name to grant access to
            name: Display name for the participant (optional)
            can_publish: Grant permission to publish tracks (creators only)
            can_subscribe: Grant permission to subscribe to tracks
            can_publish_data: Grant permission to publish data (chat)

        Returns:
            JWT token string
        """
        if self._demo_mode:
            # Demo-safe token: deterministic placeholder (NOT a real JWT).
            return f"DEMO_RTC_TOKEN::{identity}::{room}"

        api_key = self._cfg.LIVEKIT_API_KEY
        api_secret = self._cfg.LIVEKIT_API_SECRET

        if not api_key or not api_secret:
            logger.error("LIVEKIT_API_KEY or LIVEKIT_API_SECRET not configured")
            raise AppError(
                errcode=AppErrorCode.E_ROOM_SERVICE_ERROR,
                errmesg="RTC provider credentials must be configured. Set them in env.local or environment variables.",
                status_code=HttpStatusCode.INTERNAL_ERROR,
            )

        logger.info(
            f"Creating LiveKit access token for identity={identity}, room={room}, can_publish={can_publish}"
        )

        token = api.AccessToken(api_key, api_secret).with_identity(identity)
        if name:
            token = token.with_name(name)

        grants = api.VideoGrants(
            room_join=True,
            room=room,
            can_publish=can_publish,
            can_subscribe=can_subscribe,
            can_publish_data=can_publish_data,
        )
        token = token.with_grants(grants)

        return token.to_jwt()
