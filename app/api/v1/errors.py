from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from livekit.api.twirp_client import TwirpError, TwirpErrorCode
from loguru import logger

from app.shared.api.utils import E_INVALID_PARAMS, ApiFailure, api_failure, make_response
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Convert an AppError into the failure envelope.

    Payment-required outcomes are part of normal flow and logged at INFO.
    """
    log_msg = f"{exc.errcode} {exc.erresid} msg={exc.errmesg} caller={exc.caller_info}"
    if exc.errcode == AppErrorCode.E_INTERNAL_ERROR:
        logger.error(log_msg)
    elif exc.errcode == AppErrorCode.E_PAYMENT_REQUIRED:
        logger.info(log_msg)
    else:
        logger.warning(log_msg)

    failure = ApiFailure(
        errcode=exc.errcode,
        errmesg=exc.errmesg,
        erresid=exc.erresid,
        details=exc.details,
    )
    headers = None
    if exc.status_code == HttpStatusCode.SERVICE_UNAVAILABLE:
        headers = {"Retry-After": "5"}
    return make_response(failure, status_code=exc.status_code, headers=headers)


async def app_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()

    logger.warning(
        "Validation error: path={} method={} errors={}",
        request.url.path,
        request.method,
        errors,
    )

    failure = api_failure(E_INVALID_PARAMS, errmesg=str(errors))
    return make_response(failure, status_code=HttpStatusCode.UNPROCESSABLE_ENTITY)


_TWIRP_TO_APP_ERROR_MAP = {
    TwirpErrorCode.NOT_FOUND: AppErrorCode.E_ROOM_SERVICE_NOT_FOUND,
    TwirpErrorCode.UNAUTHENTICATED: AppErrorCode.E_ROOM_SERVICE_UNAUTHENTICATED,
    TwirpErrorCode.PERMISSION_DENIED: AppErrorCode.E_ROOM_SERVICE_PERMISSION_DENIED,
    TwirpErrorCode.UNAVAILABLE: AppErrorCode.E_ROOM_SERVICE_UNAVAILABLE,
    TwirpErrorCode.DEADLINE_EXCEEDED: AppErrorCode.E_ROOM_SERVICE_UNAVAILABLE,
}


async def twirp_error_handler(request: Request, exc: TwirpError) -> JSONResponse:
    """Convert a Room Service (LiveKit Twirp) error into the failure envelope."""
    errcode = _TWIRP_TO_APP_ERROR_MAP.get(exc.code, AppErrorCode.E_ROOM_SERVICE_ERROR)

    log_msg = f"TwirpError: code={exc.code} status={exc.status} msg={exc.message}"
    if exc.metadata:
        log_msg += f" metadata={exc.metadata}"

    if exc.status >= 500:
        logger.error(log_msg)
    else:
        logger.warning(log_msg)

    failure = ApiFailure(errcode=errcode.value, errmesg=exc.message)
    return make_response(failure, status_code=exc.status)
