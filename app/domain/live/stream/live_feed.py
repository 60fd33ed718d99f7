"""Periodic live listing for the server-sent events feed."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

from loguru import logger

from .stream_domain import StreamService
from .stream_models import LiveStreamResponse


async def live_listing_updates(
    service: StreamService,
    is_disconnected: Callable[[], Awaitable[bool]],
    interval_seconds: float,
) -> AsyncIterator[list[LiveStreamResponse]]:
    """Yield the live listing every `interval_seconds` until the client goes away.

    The disconnect check runs before each listing query and again before each
    yield, so no work is done and nothing is written once the client has left.
    """
    sent = 0
    try:
        while True:
            if await is_disconnected():
                break
            streams = await service.list_live_streams()

            if await is_disconnected():
                break
            yield streams
            sent += 1

            await asyncio.sleep(interval_seconds)
    finally:
        logger.debug(f"Live listing feed closed after {sent} updates")
