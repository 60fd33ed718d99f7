"""Stream persistence."""

from beanie.operators import In, Inc
from loguru import logger

from app.schemas import Stream


class StreamStore:
    """Read/write access to `Stream` documents."""

    async def get(self, stream_id: str) -> Stream | None:
        return await Stream.find_one(Stream.stream_id == stream_id)

    async def get_by_room(self, room_name: str) -> Stream | None:
        return await Stream.find_one(Stream.room_name == room_name)

    async def get_live_for_creator(self, creator_id: str) -> Stream | None:
        """Most recently started live stream of a creator."""
        return (
            await Stream.find(
                Stream.creator_id == creator_id,
                Stream.is_live == True,  # noqa: E712
            )
            .sort([("started_at", -1)])
            .first_or_none()
        )

    async def insert(self, stream: Stream) -> Stream:
        await stream.insert()
        return stream

    async def save(self, stream: Stream) -> Stream:
        await stream.save()
        return stream

    async def increment_viewer_count(self, stream_id: str, by: int = 1) -> bool:
        """Atomically add to the viewer counter with `$inc`.

        Returns:
            True if a stream was updated.
        """
        result = await Stream.find(Stream.stream_id == stream_id).update(
            Inc({Stream.viewer_count: by})
        )
        updated = bool(result and result.modified_count)
        if not updated:
            logger.warning(f"Viewer count increment matched no stream: {stream_id}")
        return updated

    async def list_live_in_rooms(self, room_names: list[str]) -> list[Stream]:
        """Live streams whose room is among `room_names`, most viewed first."""
        if not room_names:
            return []
        return (
            await Stream.find(
                In(Stream.room_name, room_names),
                Stream.is_live == True,  # noqa: E712
            )
            .sort([("viewer_count", -1)])
            .to_list()
        )

