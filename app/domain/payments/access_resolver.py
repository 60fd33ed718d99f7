"""Access Resolver: decides whether a viewer may watch a stream."""

from decimal import Decimal

from loguru import logger

from app.domain.live.stream.stream_domain import stream_not_found
from app.domain.live.stream.stream_store import StreamStore
from app.schemas import Stream

from .ledger_store import LedgerStore
from .payment_models import AccessDecision, AccessReason


class AccessResolver:
    """Maps (viewer, stream) to an `AccessDecision`.

    Rules are evaluated in order and the first match wins:

    1. the viewer is the stream's creator -> granted (creator)
    2. the stream does not require payment -> granted (free)
    3. a completed payment by the viewer for the stream exists -> granted (paid)
    4. otherwise -> denied (payment_required) with the stream's price

    Decisions are computed fresh on every call; nothing is cached.
    """

    def __init__(self, ledger: LedgerStore, streams: StreamStore):
        self._ledger = ledger
        self._streams = streams

    async def resolve(self, viewer_id: str, stream: Stream) -> AccessDecision:
        if viewer_id == stream.creator_id:
            return AccessDecision.granted(AccessReason.CREATOR)

        if not stream.payment_required:
            return AccessDecision.granted(AccessReason.FREE)

        payment = await self._ledger.find_completed(stream.stream_id, viewer_id)
        if payment:
            return AccessDecision.granted(AccessReason.PAID, payment_id=payment.payment_id)

        logger.debug(f"Payment required: viewer={viewer_id} stream={stream.stream_id}")
        return AccessDecision.denied(stream.price or Decimal(0))

    async def resolve_by_id(self, viewer_id: str, stream_id: str) -> AccessDecision:
        """Resolve for a stream id.

        Raises:
            AppError: E_STREAM_NOT_FOUND if the stream does not exist.
        """
        stream = await self._streams.get(stream_id)
        if not stream:
            raise stream_not_found(stream_id)
        return await self.resolve(viewer_id, stream)
