"""Display-amount parsing and atomic-unit conversion.

Display amounts (e.g. dollars) are handled as `Decimal` end to end. A float
that reaches this module is converted through its shortest repr so that
`0.1` becomes `Decimal("0.1")`, not the binary expansion of the float.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation, localcontext

from loguru import logger

from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

USDC_DEVNET_MINT = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"
WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"

DEFAULT_DECIMALS = 6

# BSON Decimal128 holds 34 significant digits; atomic amounts are stored as int64
MAX_AMOUNT_DIGITS = 34
MAX_ATOMIC_UNITS = 2**63 - 1


@dataclass(frozen=True)
class AssetInfo:
    symbol: str
    decimals: int
    mint: str | None = None

    @property
    def scale(self) -> int:
        return 10**self.decimals


ASSETS: dict[str, AssetInfo] = {
    "USDC": AssetInfo("USDC", 6, USDC_DEVNET_MINT),
    "SOL": AssetInfo("SOL", 9, WRAPPED_SOL_MINT),
}


def get_asset(symbol: str) -> AssetInfo:
    """Look up an asset by symbol; unknown assets get 6 decimals and no mint."""
    asset = ASSETS.get(symbol.upper())
    if asset is None:
        logger.warning("Unknown asset {!r}, assuming {} decimals", symbol, DEFAULT_DECIMALS)
        return AssetInfo(symbol, DEFAULT_DECIMALS)
    return asset


def _invalid_amount(value: object, reason: str) -> AppError:
    return AppError(
        errcode=AppErrorCode.E_INVALID_AMOUNT,
        errmesg=f"Invalid amount {value!r}: {reason}",
        status_code=HttpStatusCode.BAD_REQUEST,
    )


def parse_display_amount(value: Decimal | int | float | str) -> Decimal:
    """Parse a display amount, rejecting negative, non-finite and malformed values.

    Strings may carry a leading currency sign (`"$0.10"`).
    """
    if isinstance(value, bool):
        raise _invalid_amount(value, "not a number")

    if isinstance(value, Decimal):
        amount = value
    else:
        text = repr(value) if isinstance(value, float) else str(value)
        text = text.strip().removeprefix("$")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise _invalid_amount(value, "not a number") from None

    if not amount.is_finite():
        raise _invalid_amount(value, "must be finite")
    if amount < 0:
        raise _invalid_amount(value, "must not be negative")
    if len(amount.as_tuple().digits) > MAX_AMOUNT_DIGITS:
        raise _invalid_amount(value, f"more than {MAX_AMOUNT_DIGITS} significant digits")
    return amount


def to_atomic_units(amount: Decimal, decimals: int) -> int:
    """Scale a display amount to the asset's smallest unit, flooring any remainder.

    Raises:
        AppError: E_INVALID_AMOUNT if the result does not fit in a signed 64-bit integer.
    """
    # 2**63 has 19 integer digits
    if amount and amount.adjusted() + decimals > 18:
        raise _invalid_amount(amount, "exceeds the largest storable atomic amount")

    # Enough precision that scaling is exact and only the floor discards digits
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(amount.as_tuple().digits) + decimals + 1)
        atomic = int(amount.scaleb(decimals).to_integral_value(rounding=ROUND_FLOOR))

    if atomic > MAX_ATOMIC_UNITS:
        raise _invalid_amount(amount, "exceeds the largest storable atomic amount")
    return atomic


def format_price(amount: Decimal) -> str:
    """Render a display amount as a currency string: `$5.00`, `$0.10`, `$0.001`."""
    if amount.as_tuple().exponent >= -2:  # type: ignore[operator]
        amount = amount.quantize(Decimal("0.01"))
    return f"${amount}"
