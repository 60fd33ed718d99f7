import time
import traceback
import uuid
from contextlib import asynccontextmanager
from os import environ

import logfire
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from granian import Granian
from livekit.api.twirp_client import TwirpError
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.v1.errors import app_error_handler, app_validation_exception_handler, twirp_error_handler
from app.api.v1.routers import payments, streams, watch
from app.app_config import AppEnvironConfig, get_app_environ_config
from app.domain.challenge.middleware import PaymentChallengeMiddleware
from app.schemas.init_schemas import init_schema
from app.services.app_services import AppServices, build_app_services
from app.shared.api import health
from app.shared.api.utils import api_failure, init_logger
from app.shared.storage.mongo import MongoManager
from app.utils.app_errors import AppError, AppErrorCode


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000

            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Duration: {process_time:.2f}ms"
            )

            return response

        except Exception as exc:
            process_time = (time.time() - start_time) * 1000

            logger.error(
                f"[{request_id}] Unhandled exception in {request.method} {request.url.path} - "
                f"Duration: {process_time:.2f}ms - "
                f"Error: {type(exc).__name__}: {exc}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            failure = api_failure(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(
                status_code=500,
                content=failure.model_dump(),
            )


def _configure_logfire(server: FastAPI, cfg: AppEnvironConfig) -> None:
    logger.info("Logfire initializing")

    logfire.configure(
        token=cfg.LOGFIRE_TOKEN,
        service_name="paycast-api",
        service_version=environ.get("BUILD_COMMIT") or "dev",
    )

    logger.info("Logfire instrument fastapi")
    logfire.instrument_fastapi(server, capture_headers=True)

    logger.info("Logfire instrument mongo")
    logfire.instrument_pymongo(capture_statement=cfg.DEBUG)

    logger.info("Logfire instrument httpx")
    logfire.instrument_httpx()

    logger.info("Logfire instrument pydantic")
    logfire.instrument_pydantic()


@asynccontextmanager
async def lifespan(server: FastAPI):
    cfg: AppEnvironConfig = server.state.services.cfg
    init_logger(cfg.DEBUG)

    logger.info("Application startup...")

    server.state.mongo_manager = MongoManager(cfg.MONGO_URLS)

    # Initialize MongoDB schemas and Beanie ODM
    await init_schema(server.state.mongo_manager, cfg.MONGO_LABEL)

    if cfg.LOGFIRE_ENABLE:
        _configure_logfire(server, cfg)

    yield

    logger.info("Application shutdown...")

    services: AppServices = server.state.services
    await services.aclose()
    server.state.mongo_manager.close_all()


def create_app(cfg: AppEnvironConfig | None = None, services: AppServices | None = None) -> FastAPI:
    cfg = cfg or get_app_environ_config()
    services = services or build_app_services(cfg)

    server = FastAPI(
        version="1.0",
        title="PayCast API",
        docs_url="/docs" if cfg.DEBUG else None,
        redoc_url=None,
        openapi_url="/openapi.json" if cfg.DEBUG else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    server.state.services = services

    # Middleware added last runs first: logging wraps CORS wraps the payment challenge
    server.add_middleware(
        PaymentChallengeMiddleware,
        routes=services.gated_routes(),
        facilitator=services.facilitator,
        defaults=services.challenge_defaults,
        hooks=services.challenge_hooks,
    )

    server.add_middleware(
        CORSMiddleware,  # type: ignore
        allow_origins=cfg.API_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["PAYMENT-REQUIRED", "PAYMENT-RESPONSE"],
    )

    server.add_middleware(HTTPLoggingMiddleware)

    server.add_exception_handler(RequestValidationError, app_validation_exception_handler)  # type: ignore
    server.add_exception_handler(AppError, app_error_handler)  # type: ignore
    server.add_exception_handler(TwirpError, twirp_error_handler)  # type: ignore

    server.include_router(health.router)
    for module in (streams, payments, watch):
        server.include_router(module.router, prefix="/api/v1")

    return server


def build_granian_kwargs(cfg: AppEnvironConfig):
    kwargs = {
        "interface": "asgi",
        "address": cfg.API_HOST,
        "port": cfg.API_PORT,
        "workers": cfg.API_WORKERS,
        "reload": cfg.DEBUG,
        "factory": True,
    }

    return kwargs


if __name__ == "__main__":
    granian_kwargs = build_granian_kwargs(get_app_environ_config())
    Granian("app.main:create_app", **granian_kwargs).serve()
