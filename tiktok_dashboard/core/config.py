from pydantic_settings import BaseSettings
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "TikTok Dashboard"
    APP_PORT: int = 3001
    DEBUG: bool = False
    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGINS: str = "http://localhost:5173"

    # Database
    DB_URL: Optional[str] = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "tiktok_dashboard"
    POSTGRES_PORT: int = 5432

    # Logging
    LOGS_PATH: str = "logs"
    LOG_LEVEL: str = "INFO"

    # TikTok personal API (Login Kit / Display API)
    TIKTOK_CLIENT_KEY: str = ""
    TIKTOK_CLIENT_SECRET: str = ""
    TIKTOK_REDIRECT_URI: str = "http://localhost:3001/api/tiktok/auth/callback"
    TIKTOK_AUTH_URL: str = "https://www.tiktok.com/v2/auth/authorize/"
    TIKTOK_TOKEN_URL: str = "https://open.tiktokapis.com/v2/oauth/token/"
    TIKTOK_API_BASE: str = "https://open.tiktokapis.com"
    TIKTOK_SCOPES: str = "user.info.basic,user.info.profile,user.info.stats,video.list"

    # TikTok Shop seller API
    TIKTOK_SHOP_APP_KEY: str = ""
    TIKTOK_SHOP_APP_SECRET: str = ""
    TIKTOK_SHOP_API_BASE: str = "https://open-api.tiktokglobalshop.com"
    TIKTOK_AUTH_BASE: str = "https://auth.tiktok-shops.com"
    TIKTOK_SHOP_SIGN_BODY: bool = False

    # Token / OAuth session lifecycle
    TOKEN_REFRESH_BUFFER_SECONDS: int = 300
    OAUTH_STATE_TTL_SECONDS: int = 600
    OAUTH_STATE_SWEEP_SECONDS: int = 600

    # Sync
    SYNC_PAGE_DELAY_SECONDS: float = 1.0
    SYNC_LOOKBACK_DAYS: int = 30
    HTTP_TIMEOUT_SECONDS: float = 30.0
    CRON_SECRET: str = ""

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        extra = "ignore"


@dataclass(frozen=True)
class TikTokConfig:
    """Personal-account API settings, resolved once at startup"""
    client_key: str
    client_secret: str
    redirect_uri: str
    auth_url: str
    token_url: str
    api_base: str
    scopes: str
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.client_key and self.client_secret)


@dataclass(frozen=True)
class TikTokShopConfig:
    """Seller API settings, resolved once at startup"""
    app_key: str
    app_secret: str
    api_base: str
    auth_base: str
    sign_body: bool = False
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.app_key and self.app_secret)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


@lru_cache()
def get_tiktok_config() -> TikTokConfig:
    s = get_settings()
    return TikTokConfig(
        client_key=s.TIKTOK_CLIENT_KEY,
        client_secret=s.TIKTOK_CLIENT_SECRET,
        redirect_uri=s.TIKTOK_REDIRECT_URI,
        auth_url=s.TIKTOK_AUTH_URL,
        token_url=s.TIKTOK_TOKEN_URL,
        api_base=s.TIKTOK_API_BASE.rstrip("/"),
        scopes=s.TIKTOK_SCOPES,
        timeout=s.HTTP_TIMEOUT_SECONDS,
    )


@lru_cache()
def get_shop_config() -> TikTokShopConfig:
    s = get_settings()
    return TikTokShopConfig(
        app_key=s.TIKTOK_SHOP_APP_KEY,
        app_secret=s.TIKTOK_SHOP_APP_SECRET,
        api_base=s.TIKTOK_SHOP_API_BASE.rstrip("/"),
        auth_base=s.TIKTOK_AUTH_BASE.rstrip("/"),
        sign_body=s.TIKTOK_SHOP_SIGN_BODY,
        timeout=s.HTTP_TIMEOUT_SECONDS,
    )


settings = get_settings()
