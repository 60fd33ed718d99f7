"""Stream domain service - lifecycle of streams the payment core reads from."""

from datetime import datetime, timezone

from loguru import logger
from pymongo.errors import DuplicateKeyError

from app.domain.utils.idgen import new_room_name, new_stream_id
from app.schemas import Stream
from app.services.integrations.livekit_service import LivekitService
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .stream_models import (
    LiveStreamResponse,
    StreamCreateParams,
    StreamResponse,
    StreamUpdateParams,
)
from .stream_store import StreamStore


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def stream_not_found(key: str) -> AppError:
    return AppError(
        errcode=AppErrorCode.E_STREAM_NOT_FOUND,
        errmesg=f"Stream not found: {key}",
        status_code=HttpStatusCode.NOT_FOUND,
    )


def to_stream_response(stream: Stream) -> StreamResponse:
    return StreamResponse(**stream.model_dump(exclude={"id"}))


class StreamService:
    """Stream lifecycle: go live, edit terms, end, and look up."""

    def __init__(self, streams: StreamStore, room_service: LivekitService):
        self._streams = streams
        self._rooms = room_service

    async def create_stream(self, params: StreamCreateParams) -> StreamResponse:
        """Persist a new live stream for the creator and open its room."""
        now = utc_now()
        stream = Stream(
            stream_id=new_stream_id(),
            room_name=params.room_name or new_room_name(),
            creator_id=params.creator_id,
            payout_address=params.payout_address,
            title=params.title,
            description=params.description,
            category=params.category,
            thumbnail=params.thumbnail,
            price=params.price if params.price else None,
            is_live=True,
            viewer_count=0,
            created_at=now,
            updated_at=now,
            started_at=now,
        )

        try:
            await self._streams.insert(stream)
        except DuplicateKeyError:
            raise AppError(
                errcode=AppErrorCode.E_STREAM_EXISTS,
                errmesg=f"Room already in use: {stream.room_name}",
                status_code=HttpStatusCode.CONFLICT,
            ) from None

        logger.info(
            f"Stream created: stream_id={stream.stream_id} room={stream.room_name} "
            f"creator={stream.creator_id} price={stream.price}"
        )
        await self._rooms.create_room(stream.room_name)

        return to_stream_response(stream)

    async def update_stream(
        self,
        stream_id: str,
        creator_id: str,
        params: StreamUpdateParams,
    ) -> StreamResponse:
        """Update descriptive metadata or price. Only the owning creator may do this."""
        stream = await self._get_owned_stream(stream_id, creator_id)

        updates = params.model_dump(exclude_unset=True)
        changed_keys: list[str] = []
        for field, value in updates.items():
            if field == "price" and value is not None and value == 0:
                value = None
            if getattr(stream, field) != value:
                setattr(stream, field, value)
                changed_keys.append(field)

        if changed_keys:
            stream.payment_required = stream.price is not None and stream.price > 0
            stream.updated_at = utc_now()
            logger.debug(f"Updating stream {stream_id}: {changed_keys}")
            await self._streams.save(stream)

        return to_stream_response(stream)

    async def stop_stream(self, stream_id: str, creator_id: str) -> StreamResponse:
        """Transition a live stream to ended and close its room."""
        stream = await self._get_owned_stream(stream_id, creator_id)
        if not stream.is_live:
            raise AppError(
                errcode=AppErrorCode.E_STREAM_ENDED,
                errmesg=f"Stream already ended: {stream_id}",
                status_code=HttpStatusCode.CONFLICT,
            )

        await self._rooms.delete_room(stream.room_name)

        now = utc_now()
        stream.is_live = False
        stream.ended_at = now
        stream.updated_at = now
        await self._streams.save(stream)
        logger.info(f"Stream ended: stream_id={stream_id}")

        return to_stream_response(stream)

    async def get_stream(self, stream_id: str) -> StreamResponse:
        stream = await self._streams.get(stream_id)
        if not stream:
            raise stream_not_found(stream_id)
        return to_stream_response(stream)

    async def get_stream_by_room(self, room_name: str) -> StreamResponse:
        stream = await self._streams.get_by_room(room_name)
        if not stream:
            raise stream_not_found(room_name)
        return to_stream_response(stream)

    async def get_live_stream_for_creator(self, creator_id: str) -> Stream:
        stream = await self._streams.get_live_for_creator(creator_id)
        if not stream:
            raise AppError(
                errcode=AppErrorCode.E_STREAM_NOT_FOUND,
                errmesg="No active stream found",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return stream

    async def list_live_streams(self) -> list[LiveStreamResponse]:
        """Cross-reference occupied Room Service rooms with live stream rows."""
        rooms = await self._rooms.list_rooms()
        occupancy = {r.room_name: r.participant_count for r in rooms if r.participant_count > 0}
        if not occupancy:
            return []

        streams = await self._streams.list_live_in_rooms(list(occupancy))
        return [
            LiveStreamResponse(
                **stream.model_dump(exclude={"id"}),
                current_viewers=occupancy.get(stream.room_name, 0),
            )
            for stream in streams
        ]

    async def _get_owned_stream(self, stream_id: str, creator_id: str) -> Stream:
        stream = await self._streams.get(stream_id)
        if not stream:
            raise stream_not_found(stream_id)
        if stream.creator_id != creator_id:
            logger.warning(f"User {creator_id} attempted to modify stream {stream_id}")
            raise AppError(
                errcode=AppErrorCode.E_FORBIDDEN,
                errmesg="Only the creator can modify this stream",
                status_code=HttpStatusCode.FORBIDDEN,
            )
        return stream
