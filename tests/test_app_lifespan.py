"""Tests for application startup and shutdown wiring."""

from unittest.mock import AsyncMock, MagicMock

import httpx

from app import main
from app.app_config import AppEnvironConfig
from app.services.app_services import build_app_services


async def test_lifespan_uses_injected_mongo_settings(monkeypatch, demo_config: AppEnvironConfig):
    cfg = demo_config.model_copy(
        update={
            "MONGO_URLS": {"MONGO_URL_PAYCAST_TEST": "mongodb://mongo.test:27017/paycast"},
            "MONGO_LABEL": "paycast_test",
            "LOGFIRE_ENABLE": False,
        }
    )
    manager = MagicMock()
    manager_cls = MagicMock(return_value=manager)
    init_schema = AsyncMock()
    monkeypatch.setattr(main, "MongoManager", manager_cls)
    monkeypatch.setattr(main, "init_schema", init_schema)

    http_client = httpx.AsyncClient()
    app = main.create_app(cfg, build_app_services(cfg, http_client=http_client))

    async with main.lifespan(app):
        manager_cls.assert_called_once_with({"MONGO_URL_PAYCAST_TEST": "mongodb://mongo.test:27017/paycast"})
        init_schema.assert_awaited_once_with(manager, "paycast_test")

    manager.close_all.assert_called_once()
    assert http_client.is_closed
