# Services Package
from . import credential_service
from . import oauth_state
from . import token_service
from . import shop_auth_service
from .tiktok_sync_service import TikTokSyncService
from .shop_sync_service import ShopSyncService

__all__ = [
    "credential_service",
    "oauth_state",
    "token_service",
    "shop_auth_service",
    "TikTokSyncService",
    "ShopSyncService",
]
