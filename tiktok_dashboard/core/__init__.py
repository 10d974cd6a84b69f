from .config import settings, get_settings, get_tiktok_config, get_shop_config
from .database import engine, SessionLocal, get_db, Base

__all__ = [
    "settings",
    "get_settings",
    "get_tiktok_config",
    "get_shop_config",
    "engine",
    "SessionLocal",
    "get_db",
    "Base",
]
