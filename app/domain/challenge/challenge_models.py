"""Wire models for the payment challenge exchange (x402 v2 style).

Field names are snake_case in Python and camelCase on the wire.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

X402_VERSION = 2

PAYMENT_REQUIRED_HEADER = "PAYMENT-REQUIRED"
PAYMENT_SIGNATURE_HEADER = "PAYMENT-SIGNATURE"
LEGACY_PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER = "PAYMENT-RESPONSE"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class ResourceDescriptor:
    """Per-request description of what is being paid for.

    Produced by a route's descriptor resolver and handed to the middleware;
    `price` and `pay_to` are None when the resource carries no explicit terms.
    """

    resource_id: str
    price: Decimal | None = None
    pay_to: str | None = None
    description: str = ""
    stream_id: str | None = None
    payer_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


class PaymentRequirements(WireModel):
    """ChallengeTerms: one acceptable way to pay. Price is a display amount string."""

    scheme: Literal["exact"] = "exact"
    network: str
    pay_to: str
    price: str
    asset: str
    max_timeout_seconds: int
    extra: dict[str, Any] | None = None


class ResourceInfo(WireModel):
    url: str
    description: str = ""
    mime_type: str = "application/json"


class PaymentRequired(WireModel):
    x402_version: int = X402_VERSION
    error: str | None = None
    resource: ResourceInfo
    accepts: list[PaymentRequirements]


class VerifyResponse(WireModel):
    is_valid: bool
    invalid_reason: str | None = None
    payer: str | None = None


class SettleResponse(WireModel):
    success: bool
    transaction: str | None = None
    network: str | None = None
    payer: str | None = None
    error_reason: str | None = None


@dataclass
class VerifyContext:
    descriptor: ResourceDescriptor
    requirements: PaymentRequirements
    payment_payload: dict[str, Any]


@dataclass
class SettleContext:
    descriptor: ResourceDescriptor
    requirements: PaymentRequirements
    payment_payload: dict[str, Any]
    verification: VerifyResponse
    settlement: SettleResponse | None = None
    error: str | None = None

    @property
    def payer(self) -> str | None:
        """Who paid: the identified caller, else the payer the facilitator reported."""
        if self.descriptor.payer_id:
            return self.descriptor.payer_id
        if self.settlement and self.settlement.payer:
            return self.settlement.payer
        return self.verification.payer
