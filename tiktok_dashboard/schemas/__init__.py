# Schemas Package
from .requests import AuthStartRequest, ShopFinalizeRequest, TikTokSyncRequest, ShopSyncRequest

__all__ = [
    "AuthStartRequest",
    "ShopFinalizeRequest",
    "TikTokSyncRequest",
    "ShopSyncRequest",
]
