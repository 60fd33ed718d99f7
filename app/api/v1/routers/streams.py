import orjson
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from app.api.v1.dependency import CurrentViewer, get_app_services, get_stream_service
from app.api.v1.schemas.base import ApiOut
from app.api.v1.schemas.stream import (
    CreateStreamIn,
    ListLiveOut,
    LiveStreamOut,
    StopStreamIn,
    StreamOut,
    UpdateStreamIn,
)
from app.domain.live.stream.live_feed import live_listing_updates
from app.domain.live.stream.stream_domain import StreamService
from app.domain.live.stream.stream_models import StreamCreateParams, StreamUpdateParams
from app.services.app_services import AppServices

router = APIRouter(prefix="/streams")


@router.post("/create_stream")
async def create_stream(
    stream: CreateStreamIn,
    user: CurrentViewer,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamOut]:
    """Go live. The caller becomes the stream's creator."""
    params = StreamCreateParams(
        creator_id=user.user_id,
        title=stream.title,
        room_name=stream.room_name,
        payout_address=stream.payout_address or user.user_id,
        description=stream.description,
        category=stream.category,
        thumbnail=stream.thumbnail,
        price=stream.price,
    )

    result = await service.create_stream(params)

    return ApiOut[StreamOut](results=StreamOut(**result.model_dump()))


@router.post("/stop_stream")
async def stop_stream(
    body: StopStreamIn,
    user: CurrentViewer,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamOut]:
    result = await service.stop_stream(stream_id=body.stream_id, creator_id=user.user_id)

    return ApiOut[StreamOut](results=StreamOut(**result.model_dump()))


@router.post("/update_stream")
async def update_stream(
    stream: UpdateStreamIn,
    user: CurrentViewer,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamOut]:
    """Update price or descriptive metadata of a stream owned by the caller.

    Sending `price: null` or `price: 0` makes the stream free.
    """
    # Only include fields that were explicitly provided in the request
    update_data = stream.model_dump(exclude_unset=True, exclude={"stream_id"})
    params = StreamUpdateParams(**update_data)

    result = await service.update_stream(
        stream_id=stream.stream_id,
        creator_id=user.user_id,
        params=params,
    )

    return ApiOut[StreamOut](results=StreamOut(**result.model_dump()))


@router.get("/get_stream")
async def get_stream(
    stream_id: str = Query(..., description="Stream identifier"),
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamOut]:
    result = await service.get_stream(stream_id)
    return ApiOut[StreamOut](results=StreamOut(**result.model_dump()))


@router.get("/get_stream_by_room")
async def get_stream_by_room(
    room_name: str = Query(..., description="Room name"),
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamOut]:
    result = await service.get_stream_by_room(room_name)
    return ApiOut[StreamOut](results=StreamOut(**result.model_dump()))


@router.get("/list_live")
async def list_live(
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[ListLiveOut]:
    """Streams that are live and have participants in their room, most viewed first."""
    streams = await service.list_live_streams()
    return ApiOut[ListLiveOut](
        results=ListLiveOut(streams=[LiveStreamOut(**s.model_dump()) for s in streams])
    )


@router.get("/live_updates")
async def live_updates(
    request: Request,
    services: AppServices = Depends(get_app_services),
) -> StreamingResponse:
    """Server-sent events: the live listing, pushed at a fixed interval."""

    async def event_stream():
        yield "event: connected\ndata: {}\n\n"
        async for streams in live_listing_updates(
            services.stream_service,
            request.is_disconnected,
            services.cfg.LIVE_UPDATES_INTERVAL_SECONDS,
        ):
            data = ListLiveOut(streams=[LiveStreamOut(**s.model_dump()) for s in streams])
            yield f"event: streams\ndata: {orjson.dumps(data.model_dump(mode='json')).decode()}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
