from fastapi import APIRouter, Request
from loguru import logger
from pymongo.errors import PyMongoError

from .utils import ApiSuccess, api_failure, make_response

router = APIRouter()


@router.get("/health", response_model=ApiSuccess)
async def health(request: Request):
    mongo_manager = getattr(request.app.state, "mongo_manager", None)
    if mongo_manager is not None:
        label = request.app.state.services.cfg.MONGO_LABEL
        try:
            await mongo_manager.get_client(label).admin.command("ping")
        except PyMongoError as e:
            logger.warning(f"Health check failed: {e}")
            return make_response(api_failure(errmesg="Database unavailable"), status_code=503)
    return ApiSuccess(results="OK")
