"""Application error type shared by domain services and routers."""

import inspect
from enum import IntEnum, StrEnum
from typing import Any
from uuid import uuid4


class HttpStatusCode(IntEnum):
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    PAYMENT_REQUIRED = 402
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422
    INTERNAL_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503


class AppErrorCode(StrEnum):
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_PARAMS = "E_INVALID_PARAMS"
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"
    E_FORBIDDEN = "E_FORBIDDEN"

    E_STREAM_NOT_FOUND = "E_STREAM_NOT_FOUND"
    E_STREAM_EXISTS = "E_STREAM_EXISTS"
    E_STREAM_ENDED = "E_STREAM_ENDED"

    E_PAYMENT_REQUIRED = "E_PAYMENT_REQUIRED"
    E_INVALID_AMOUNT = "E_INVALID_AMOUNT"
    E_INVALID_PAYMENT = "E_INVALID_PAYMENT"
    E_FACILITATOR_UNAVAILABLE = "E_FACILITATOR_UNAVAILABLE"

    E_ROOM_SERVICE_ERROR = "E_ROOM_SERVICE_ERROR"
    E_ROOM_SERVICE_NOT_FOUND = "E_ROOM_SERVICE_NOT_FOUND"
    E_ROOM_SERVICE_UNAUTHENTICATED = "E_ROOM_SERVICE_UNAUTHENTICATED"
    E_ROOM_SERVICE_PERMISSION_DENIED = "E_ROOM_SERVICE_PERMISSION_DENIED"
    E_ROOM_SERVICE_UNAVAILABLE = "E_ROOM_SERVICE_UNAVAILABLE"


class AppError(Exception):
    """Error raised for expected failures that map to an API failure envelope.

    The raise site is captured so the exception handler can log where the
    error originated rather than where it was converted.
    """

    def __init__(
        self,
        errcode: AppErrorCode | str,
        errmesg: str,
        status_code: HttpStatusCode | int = HttpStatusCode.BAD_REQUEST,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(errmesg)
        self.errcode = str(errcode)
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.details = details
        self.erresid = uuid4().hex[:10]

        frame = inspect.currentframe()
        caller = frame.f_back if frame else None
        # Skip frames of AppError subclasses' __init__
        while caller and caller.f_code.co_name == "__init__" and "self" in caller.f_locals:
            if not isinstance(caller.f_locals["self"], AppError):
                break
            caller = caller.f_back
        if caller:
            module = caller.f_globals.get("__name__", "?")
            self.caller_info = f"{module}:{caller.f_code.co_name}:{caller.f_lineno}"
        else:
            self.caller_info = "unknown"

    def __repr__(self) -> str:
        return f"AppError(errcode={self.errcode!r}, status_code={self.status_code}, errmesg={self.errmesg!r})"
