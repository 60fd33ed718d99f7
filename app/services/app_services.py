"""Component wiring for the application.

Every component receives its collaborators through its constructor; this is
the one place they are assembled.
"""

from dataclasses import dataclass

import httpx
from loguru import logger

from app.app_config import AppEnvironConfig
from app.domain.challenge.facilitator import FacilitatorClient
from app.domain.challenge.middleware import ChallengeDefaults, ChallengeHooks, GatedRoute
from app.domain.live.stream.stream_domain import StreamService
from app.domain.live.stream.stream_store import StreamStore
from app.domain.payments.access_resolver import AccessResolver
from app.domain.payments.ledger_store import LedgerStore
from app.domain.payments.payment_recorder import PaymentRecorder
from app.domain.payments.token_issuer import SessionTokenIssuer
from app.domain.payments.watch_gate import StreamWatchGate
from app.services.integrations.livekit_service import LivekitService

WATCH_ROUTE = "/api/v1/watch/{room_name}"


@dataclass
class AppServices:
    cfg: AppEnvironConfig
    stream_store: StreamStore
    ledger_store: LedgerStore
    room_service: LivekitService
    stream_service: StreamService
    access_resolver: AccessResolver
    payment_recorder: PaymentRecorder
    token_issuer: SessionTokenIssuer
    http_client: httpx.AsyncClient
    facilitator: FacilitatorClient
    watch_gate: StreamWatchGate
    challenge_hooks: ChallengeHooks

    @property
    def challenge_defaults(self) -> ChallengeDefaults:
        return ChallengeDefaults(
            network=self.cfg.X402_NETWORK,
            asset=self.cfg.X402_ASSET,
            fallback_pay_to=self.cfg.X402_FALLBACK_PAY_TO,
            default_price=self.cfg.X402_DEFAULT_PRICE,
            max_timeout_seconds=self.cfg.X402_MAX_TIMEOUT_SECONDS,
        )

    def gated_routes(self) -> list[GatedRoute]:
        routes = []
        for path in self.cfg.X402_GATED_ROUTES:
            if path == WATCH_ROUTE:
                routes.append(
                    GatedRoute(
                        path,
                        self.watch_gate.resolve_descriptor,
                        description="Live stream access",
                    )
                )
            else:
                routes.append(GatedRoute(path))
        return routes

    async def aclose(self) -> None:
        await self.http_client.aclose()


def build_app_services(
    cfg: AppEnvironConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
    room_service: LivekitService | None = None,
) -> AppServices:
    stream_store = StreamStore()
    ledger_store = LedgerStore()
    room_service = room_service or LivekitService(cfg)

    access_resolver = AccessResolver(ledger_store, stream_store)
    payment_recorder = PaymentRecorder(ledger_store, stream_store)
    token_issuer = SessionTokenIssuer(
        access_resolver,
        room_service,
        api_token_secret=cfg.api_token_secret,
        api_token_ttl_seconds=cfg.API_TOKEN_TTL_SECONDS,
        demo_mode=cfg.DEMO_MODE,
    )

    http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(cfg.FACILITATOR_TIMEOUT_SECONDS))
    facilitator = FacilitatorClient(cfg.FACILITATOR_URL, http_client, timeout=cfg.FACILITATOR_TIMEOUT_SECONDS)

    watch_gate = StreamWatchGate(stream_store, access_resolver, payment_recorder, token_issuer)
    hooks = ChallengeHooks()
    hooks.on_after_settle(watch_gate.record_settlement)

    if not cfg.X402_FALLBACK_PAY_TO:
        logger.warning("X402_FALLBACK_PAY_TO is not set; streams without a payout address cannot be paid")

    return AppServices(
        cfg=cfg,
        stream_store=stream_store,
        ledger_store=ledger_store,
        room_service=room_service,
        stream_service=StreamService(stream_store, room_service),
        access_resolver=access_resolver,
        payment_recorder=payment_recorder,
        token_issuer=token_issuer,
        http_client=http_client,
        facilitator=facilitator,
        watch_gate=watch_gate,
        challenge_hooks=hooks,
    )
