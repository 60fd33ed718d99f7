"""
MongoDB client manager that creates and tracks labelled motor clients.
"""

import threading
from collections.abc import Mapping

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient

DEFAULT_MONGO_URL = "mongodb://localhost:27017/paycast"


def hide_password_in_connection_string(connection_string: str) -> str:
    """Replace the password of a `user:pass@host` connection string with asterisks."""
    if "://" not in connection_string:
        return connection_string

    protocol_part, rest = connection_string.split("://", 1)
    last_at_index = rest.rfind("@")
    if last_at_index == -1:
        return connection_string

    auth_part = rest[:last_at_index]
    host_part = rest[last_at_index + 1 :]
    if ":" not in auth_part:
        return connection_string

    username, password = auth_part.split(":", 1)
    if not username or not password:
        return connection_string
    return f"{protocol_part}://{username}:***@{host_part}"


def label_from_env_var(env_var: str) -> str | None:
    if env_var.startswith("MONGO_URL_"):
        return env_var[10:].lower()
    if env_var == "MONGO_URL":
        return "default"
    return None


class MongoManager:
    """
    MongoDB client manager.

    Connection strings are read from `MONGO_URL_<LABEL>` keys (and `MONGO_URL`
    for the `default` label). Clients are created lazily and shared per label.
    """

    def __init__(
        self,
        settings: Mapping[str, str | None],
        *,
        max_pool_size: int = 5,
        server_selection_timeout_ms: int = 30000,
        connect_timeout_ms: int = 30000,
        socket_timeout_ms: int = 300000,
    ):
        self._clients: dict[str, AsyncIOMotorClient] = {}
        self._connection_strings: dict[str, str] = {}
        self._max_pool_size = max_pool_size
        self._server_selection_timeout = server_selection_timeout_ms
        self._connect_timeout = connect_timeout_ms
        self._socket_timeout = socket_timeout_ms
        self._lock = threading.Lock()

        for key, value in settings.items():
            label = label_from_env_var(key)
            if label is None or not value:
                continue
            if label in self._connection_strings:
                logger.warning(
                    "MongoDB connection string for label '{}' already exists, '{}' will override it",
                    label,
                    key,
                )
            self._connection_strings[label] = value
            logger.info(
                "Loaded MongoDB connection string for label '{}': {}",
                label,
                hide_password_in_connection_string(value),
            )

        self._connection_strings.setdefault("default", DEFAULT_MONGO_URL)

    def get_client(self, label: str | None = None) -> AsyncIOMotorClient:
        """Get MongoDB client by label, falling back to the default connection string."""
        label = label or "default"

        with self._lock:
            if label not in self._clients:
                connection_string = self._connection_strings.get(
                    label, self._connection_strings["default"]
                )
                logger.info("Open MongoDB client for label '{}'", label)
                self._clients[label] = AsyncIOMotorClient(
                    connection_string,
                    serverSelectionTimeoutMS=self._server_selection_timeout,
                    connectTimeoutMS=self._connect_timeout,
                    socketTimeoutMS=self._socket_timeout,
                    maxPoolSize=self._max_pool_size,
                )
            return self._clients[label]

    def close_all(self):
        with self._lock:
            clients = list(self._clients.items())
            self._clients.clear()

        for label, client in clients:
            client.close()
            logger.info("Closed MongoDB client for label '{}'", label)
