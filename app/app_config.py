from decimal import Decimal

from pydantic import BaseModel

from app.shared.config import config


def _str(key: str, default: str = "") -> str:
    return (config.get(key) or default).strip()


def _optional_str(key: str) -> str | None:
    return (config.get(key) or "").strip() or None


def _bool(key: str, default: str = "false") -> bool:
    return _str(key, default).lower() == "true"


class AppEnvironConfig(BaseModel):
    DEBUG: bool = _bool("DEBUG")

    API_HOST: str = _str("API_HOST", "0.0.0.0")
    API_PORT: int = int(_str("API_PORT", "8000"))
    API_WORKERS: int = int(_str("API_WORKERS", "1"))
    API_CORS_ORIGINS: list[str] = [x.strip() for x in _str("API_CORS_ORIGINS", "*").split(",") if x.strip()]

    # When enabled, Room Service calls are stubbed and room tokens are placeholders.
    DEMO_MODE: bool = _bool("DEMO_MODE", "true")

    MONGO_LABEL: str = _str("MONGO_LABEL", "paycast_primary")
    # MONGO_URL and MONGO_URL_<LABEL> connection strings, keyed by variable name
    MONGO_URLS: dict[str, str] = {k: v.strip() for k, v in config.items() if k.startswith("MONGO_URL") and v}

    # LiveKit configuration
    LIVEKIT_URL: str | None = _optional_str("LIVEKIT_URL")
    LIVEKIT_API_KEY: str | None = _optional_str("LIVEKIT_API_KEY")
    LIVEKIT_API_SECRET: str | None = _optional_str("LIVEKIT_API_SECRET")
    LIVEKIT_EMPTY_TIMEOUT: int = int(_str("LIVEKIT_EMPTY_TIMEOUT", "300"))
    MAX_PARTICIPANTS_LIMIT: int = int(_str("MAX_PARTICIPANTS_LIMIT", "500"))

    # Platform API token (apiToken) signing
    API_TOKEN_SECRET: str | None = _optional_str("API_TOKEN_SECRET")
    API_TOKEN_TTL_SECONDS: int = int(_str("API_TOKEN_TTL_SECONDS", "21600"))

    # Payment facilitator
    FACILITATOR_URL: str = _str("FACILITATOR_URL", "https://x402.org/facilitator")
    FACILITATOR_TIMEOUT_SECONDS: float = float(_str("FACILITATOR_TIMEOUT_SECONDS", "10"))

    # Challenge terms
    X402_NETWORK: str = _str("X402_NETWORK", "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1")
    X402_ASSET: str = _str("X402_ASSET", "USDC")
    X402_FALLBACK_PAY_TO: str = _str("X402_FALLBACK_PAY_TO")
    X402_DEFAULT_PRICE: Decimal = Decimal(_str("X402_DEFAULT_PRICE", "1.00"))
    X402_MAX_TIMEOUT_SECONDS: int = int(_str("X402_MAX_TIMEOUT_SECONDS", "300"))
    X402_GATED_ROUTES: list[str] = [
        x.strip() for x in _str("X402_GATED_ROUTES", "/api/v1/watch/{room_name}").split(",") if x.strip()
    ]

    # Live listing feed
    LIVE_UPDATES_INTERVAL_SECONDS: float = float(_str("LIVE_UPDATES_INTERVAL_SECONDS", "5"))

    LOGFIRE_ENABLE: bool = _bool("LOGFIRE_ENABLE")
    LOGFIRE_TOKEN: str | None = _optional_str("LOGFIRE_TOKEN")

    @property
    def api_token_secret(self) -> str | None:
        return self.API_TOKEN_SECRET or self.LIVEKIT_API_SECRET


def get_app_environ_config() -> AppEnvironConfig:
    return AppEnvironConfig()
