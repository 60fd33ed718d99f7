"""Challenge Middleware: enforces payment on gated routes.

Any request whose path matches a `GatedRoute` gets a `ResourceDescriptor`
from that route's resolver. A `None` descriptor lets the request through.
Otherwise the request must carry a payment proof, which is verified and
settled with the facilitator before the handler runs:

    no proof / bad proof / rejected proof -> 402 challenge
    facilitator unreachable               -> 503 (fail closed, retryable)
    verified and settled                  -> handler runs, receipt header added

What a settlement means to the application (recording a payment, bumping
counters) lives in hooks, so this module never touches storage.

Usage:
    hooks = ChallengeHooks()
    hooks.on_after_settle(record_settlement)

    app.add_middleware(
        PaymentChallengeMiddleware,
        routes=[GatedRoute("/api/v1/watch/{room_name}", watch_descriptor)],
        facilitator=FacilitatorClient(url, httpx.AsyncClient()),
        defaults=ChallengeDefaults(network=..., asset="USDC", fallback_pay_to=..., default_price=Decimal("1.00")),
        hooks=hooks,
    )
"""

import base64
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from re import Pattern
from typing import Any

import orjson
from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.routing import compile_path
from starlette.types import ASGIApp

from app.domain.utils.amounts import format_price, parse_display_amount
from app.shared.api.utils import ApiFailure, make_response
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .challenge_models import (
    LEGACY_PAYMENT_HEADER,
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_RESPONSE_HEADER,
    PAYMENT_SIGNATURE_HEADER,
    PaymentRequired,
    PaymentRequirements,
    ResourceDescriptor,
    ResourceInfo,
    SettleContext,
    SettleResponse,
    VerifyContext,
)
from .facilitator import FacilitatorClient, FacilitatorUnavailableError

MAX_PAYMENT_HEADER_BYTES = 16384
RETRY_AFTER_SECONDS = 5

DescriptorResolver = Callable[[Request, dict[str, str]], Awaitable[ResourceDescriptor | None]]
BeforeVerifyHook = Callable[[VerifyContext], Awaitable[str | None]]
AfterSettleHook = Callable[[SettleContext], Awaitable[None]]
SettleFailureHook = Callable[[SettleContext], Awaitable[SettleResponse | None]]


async def query_param_descriptor(request: Request, path_params: dict[str, str]) -> ResourceDescriptor:
    """Descriptor for generic routes: terms come from `price` / `creatorAddress` query params."""
    price = request.query_params.get("price")
    return ResourceDescriptor(
        resource_id=request.url.path,
        price=parse_display_amount(price) if price else None,
        pay_to=request.query_params.get("creatorAddress") or None,
        stream_id=request.query_params.get("streamId") or None,
    )


@dataclass(frozen=True)
class GatedRoute:
    path: str
    resolve_descriptor: DescriptorResolver = query_param_descriptor
    methods: frozenset[str] = frozenset({"GET"})
    description: str = ""
    mime_type: str = "application/json"
    _regex: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        regex, _, _ = compile_path(self.path)
        object.__setattr__(self, "_regex", regex)

    def match(self, request: Request) -> dict[str, str] | None:
        if request.method not in self.methods:
            return None
        m = self._regex.match(request.url.path)
        return m.groupdict() if m else None


@dataclass(frozen=True)
class ChallengeDefaults:
    network: str
    asset: str
    fallback_pay_to: str
    default_price: Decimal
    max_timeout_seconds: int = 300


class ChallengeHooks:
    """Application callbacks around verification and settlement.

    - before_verify: return a reason string to refuse the proof (challenge again)
    - after_settle: runs once per successful settlement, before the handler
    - settle_failure: return a `SettleResponse` to recover, or None to let it fail
    """

    def __init__(self):
        self.before_verify: list[BeforeVerifyHook] = []
        self.after_settle: list[AfterSettleHook] = []
        self.settle_failure: list[SettleFailureHook] = []

    def on_before_verify(self, hook: BeforeVerifyHook) -> BeforeVerifyHook:
        self.before_verify.append(hook)
        return hook

    def on_after_settle(self, hook: AfterSettleHook) -> AfterSettleHook:
        self.after_settle.append(hook)
        return hook

    def on_settle_failure(self, hook: SettleFailureHook) -> SettleFailureHook:
        self.settle_failure.append(hook)
        return hook


def build_requirements(descriptor: ResourceDescriptor, defaults: ChallengeDefaults) -> PaymentRequirements:
    """ChallengeTerms for a descriptor, falling back to the configured defaults."""
    price = descriptor.price if descriptor.price is not None else defaults.default_price
    pay_to = descriptor.pay_to or defaults.fallback_pay_to
    if not pay_to:
        raise AppError(
            errcode=AppErrorCode.E_INTERNAL_ERROR,
            errmesg="No payee address configured for gated resource",
            status_code=HttpStatusCode.INTERNAL_ERROR,
        )

    return PaymentRequirements(
        network=defaults.network,
        pay_to=pay_to,
        price=format_price(price),
        asset=defaults.asset,
        max_timeout_seconds=defaults.max_timeout_seconds,
        extra=descriptor.extra or None,
    )


def encode_header(data: dict[str, Any]) -> str:
    return base64.b64encode(orjson.dumps(data)).decode()


def decode_payment_header(header: str) -> dict[str, Any] | None:
    """Decode a base64 JSON payment proof; None if it is not one."""
    if len(header) > MAX_PAYMENT_HEADER_BYTES:
        return None
    try:
        payload = orjson.loads(base64.b64decode(header, validate=True))
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


class PaymentChallengeMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        *,
        routes: Sequence[GatedRoute],
        facilitator: FacilitatorClient,
        defaults: ChallengeDefaults,
        hooks: ChallengeHooks | None = None,
    ):
        super().__init__(app)
        self._routes = list(routes)
        self._facilitator = facilitator
        self._defaults = defaults
        self._hooks = hooks or ChallengeHooks()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:  # type: ignore[override]
        for route in self._routes:
            path_params = route.match(request)
            if path_params is not None:
                break
        else:
            return await call_next(request)

        try:
            return await self._handle(request, call_next, route, path_params)
        except FacilitatorUnavailableError as e:
            # Fail closed: an outage never grants access
            return self._error_response(e, headers={"Retry-After": str(RETRY_AFTER_SECONDS)})
        except AppError as e:
            return self._error_response(e)

    async def _handle(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
        route: GatedRoute,
        path_params: dict[str, str],
    ) -> Response:
        descriptor = await route.resolve_descriptor(request, path_params)
        if descriptor is None:
            return await call_next(request)

        requirements = build_requirements(descriptor, self._defaults)

        header = request.headers.get(PAYMENT_SIGNATURE_HEADER) or request.headers.get(LEGACY_PAYMENT_HEADER)
        if not header:
            return self._challenge(request, route, descriptor, requirements, f"{PAYMENT_SIGNATURE_HEADER} header is required")

        payload = decode_payment_header(header)
        if payload is None:
            logger.info(f"Undecodable payment proof for {descriptor.resource_id}")
            return self._challenge(request, route, descriptor, requirements, "Invalid payment header")

        verify_ctx = VerifyContext(descriptor=descriptor, requirements=requirements, payment_payload=payload)
        for before_hook in self._hooks.before_verify:
            reason = await before_hook(verify_ctx)
            if reason:
                logger.info(f"Payment proof refused before verify: {reason}")
                return self._challenge(request, route, descriptor, requirements, reason)

        verification = await self._facilitator.verify(payload, requirements)
        if not verification.is_valid:
            logger.info(f"Payment proof rejected for {descriptor.resource_id}: {verification.invalid_reason}")
            return self._challenge(
                request, route, descriptor, requirements, verification.invalid_reason or "Invalid payment"
            )

        settle_ctx = SettleContext(
            descriptor=descriptor,
            requirements=requirements,
            payment_payload=payload,
            verification=verification,
        )
        try:
            settlement = await self._facilitator.settle(payload, requirements)
        except FacilitatorUnavailableError as e:
            settle_ctx.error = e.reason
            recovered = await self._recover(settle_ctx)
            if recovered is None:
                raise
            settlement = recovered

        if not settlement.success:
            settle_ctx.settlement = settlement
            settle_ctx.error = settlement.error_reason or "Settlement failed"
            recovered = await self._recover(settle_ctx)
            if recovered is None:
                logger.info(f"Settlement failed for {descriptor.resource_id}: {settle_ctx.error}")
                return self._challenge(request, route, descriptor, requirements, settle_ctx.error)
            settlement = recovered

        settle_ctx.settlement = settlement
        settle_ctx.error = None
        logger.info(
            f"Payment settled for {descriptor.resource_id}: transaction={settlement.transaction} "
            f"payer={settle_ctx.payer} price={requirements.price}"
        )
        for after_hook in self._hooks.after_settle:
            await after_hook(settle_ctx)

        request.state.resource_descriptor = descriptor
        request.state.settlement = settlement
        request.state.payer_id = settle_ctx.payer

        response = await call_next(request)
        response.headers[PAYMENT_RESPONSE_HEADER] = encode_header(settlement.to_wire())
        return response

    async def _recover(self, ctx: SettleContext) -> SettleResponse | None:
        for hook in self._hooks.settle_failure:
            recovered = await hook(ctx)
            if recovered is not None and recovered.success:
                logger.info(f"Settlement recovered by hook for {ctx.descriptor.resource_id}")
                return recovered
        return None

    def _challenge(
        self,
        request: Request,
        route: GatedRoute,
        descriptor: ResourceDescriptor,
        requirements: PaymentRequirements,
        error: str | None,
    ) -> Response:
        challenge = PaymentRequired(
            error=error,
            resource=ResourceInfo(
                url=str(request.url),
                description=descriptor.description or route.description,
                mime_type=route.mime_type,
            ),
            accepts=[requirements],
        )
        wire = challenge.to_wire()
        failure = ApiFailure(
            errcode=AppErrorCode.E_PAYMENT_REQUIRED,
            errmesg=error or "Payment required",
            details=wire,
        )
        return make_response(
            failure,
            status_code=HttpStatusCode.PAYMENT_REQUIRED,
            headers={PAYMENT_REQUIRED_HEADER: encode_header(wire)},
        )

    def _error_response(self, error: AppError, headers: dict[str, str] | None = None) -> Response:
        logger.warning(f"{error.errcode} {error.erresid} {error.errmesg} caller={error.caller_info}")
        failure = ApiFailure(
            errcode=error.errcode,
            erresid=error.erresid,
            errmesg=error.errmesg,
            details=error.details,
        )
        return make_response(failure, status_code=error.status_code, headers=headers)
