"""HTTP client for the external payment facilitator.

The facilitator is a trusted oracle: its verify/settle answers are taken as
given. Calls are made once, with no retry; any transport-level failure is
reported as `FacilitatorUnavailableError` so callers can fail closed.
"""

from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .challenge_models import X402_VERSION, PaymentRequirements, SettleResponse, VerifyResponse


class FacilitatorUnavailableError(AppError):
    """The facilitator could not be reached or gave no usable answer. Retryable."""

    def __init__(self, reason: str):
        super().__init__(
            errcode=AppErrorCode.E_FACILITATOR_UNAVAILABLE,
            errmesg=f"Payment facilitator unavailable: {reason}",
            status_code=HttpStatusCode.SERVICE_UNAVAILABLE,
        )
        self.reason = reason


class FacilitatorClient:
    def __init__(self, base_url: str, http_client: httpx.AsyncClient, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self._http = http_client
        self._timeout = timeout

    async def verify(
        self, payment_payload: dict[str, Any], requirements: PaymentRequirements
    ) -> VerifyResponse:
        status_code, data = await self._post("verify", payment_payload, requirements)
        if "isValid" not in data:
            reason = data.get("invalidReason") or data.get("error") or f"verify rejected ({status_code})"
            return VerifyResponse(is_valid=False, invalid_reason=str(reason))
        try:
            return VerifyResponse.model_validate(data)
        except ValidationError as e:
            raise FacilitatorUnavailableError(f"malformed verify response: {e.error_count()} errors") from e

    async def settle(
        self, payment_payload: dict[str, Any], requirements: PaymentRequirements
    ) -> SettleResponse:
        status_code, data = await self._post("settle", payment_payload, requirements)
        if "success" not in data:
            reason = data.get("errorReason") or data.get("error") or f"settle rejected ({status_code})"
            return SettleResponse(success=False, error_reason=str(reason))
        try:
            return SettleResponse.model_validate(data)
        except ValidationError as e:
            raise FacilitatorUnavailableError(f"malformed settle response: {e.error_count()} errors") from e

    async def _post(
        self, action: str, payment_payload: dict[str, Any], requirements: PaymentRequirements
    ) -> tuple[int, dict[str, Any]]:
        url = f"{self.base_url}/{action}"
        body = {
            "x402Version": X402_VERSION,
            "paymentPayload": payment_payload,
            "paymentRequirements": requirements.to_wire(),
        }

        logger.debug(f"Calling facilitator {action}: url={url}")
        try:
            response = await self._http.post(url, json=body, timeout=self._timeout)
        except httpx.TimeoutException as e:
            logger.warning(f"Facilitator {action} timed out after {self._timeout}s: {e!r}")
            raise FacilitatorUnavailableError(f"{action} timed out") from e
        except httpx.HTTPError as e:
            logger.warning(f"Facilitator {action} request failed: {e!r}")
            raise FacilitatorUnavailableError(f"{action} request failed") from e

        if response.status_code >= 500:
            logger.warning(f"Facilitator {action} returned {response.status_code}: {response.text[:200]}")
            raise FacilitatorUnavailableError(f"{action} returned {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"Facilitator {action} returned non-JSON body: {response.text[:200]}")
            raise FacilitatorUnavailableError(f"{action} returned invalid JSON") from None

        if not isinstance(data, dict):
            raise FacilitatorUnavailableError(f"{action} returned unexpected payload")

        logger.debug(f"Facilitator {action} status={response.status_code} body={data}")
        return response.status_code, data
