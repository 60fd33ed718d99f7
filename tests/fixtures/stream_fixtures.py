"""Factories for persisted test data."""

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.app_config import AppEnvironConfig
from app.domain.utils.idgen import new_room_name, new_stream_id
from app.schemas import Stream
from app.services.integrations.livekit_service import LivekitService

CREATOR_WALLET = "CreatorWallet1111111111111111111111111111111"
VIEWER_WALLET = "ViewerWallet22222222222222222222222222222222"

MakeStream = Callable[..., Awaitable[Stream]]


@pytest.fixture
def demo_config() -> AppEnvironConfig:
    """Config with the Room Service stubbed and a known token secret."""
    return AppEnvironConfig(
        DEMO_MODE=True,
        API_TOKEN_SECRET="test-api-token-secret-0123456789abcdef",
        X402_FALLBACK_PAY_TO="PlatformFallbackWallet1111111111111111111111",
        X402_DEFAULT_PRICE=Decimal("1.00"),
    )


@pytest.fixture
def demo_livekit(demo_config: AppEnvironConfig) -> LivekitService:
    return LivekitService(demo_config)


@pytest.fixture
def make_stream(beanie_db) -> MakeStream:
    """Insert a live stream; `price=None` makes it free."""

    async def _make(
        creator_id: str = CREATOR_WALLET,
        price: str | None = None,
        room_name: str | None = None,
        payout_address: str | None = CREATOR_WALLET,
        title: str = "Test Stream",
        is_live: bool = True,
        viewer_count: int = 0,
    ) -> Stream:
        now = datetime.now(timezone.utc)
        stream = Stream(
            stream_id=new_stream_id(),
            room_name=room_name or new_room_name(),
            creator_id=creator_id,
            payout_address=payout_address,
            title=title,
            price=Decimal(price) if price is not None else None,
            is_live=is_live,
            viewer_count=viewer_count,
            created_at=now,
            updated_at=now,
            started_at=now,
        )
        await stream.insert()
        return stream

    return _make
