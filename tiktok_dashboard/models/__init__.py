# Models Package
from .base import UUIDMixin, TimestampMixin, JSONType
from .account import Account
from .token import TikTokAuthToken
from .shop import TikTokShop
from .content import TikTokUserInfo, TikTokVideo, TikTokVideoAnalytics
from .commerce import ShopOrder, ShopProduct, ShopSettlement, ShopPerformance

__all__ = [
    "UUIDMixin",
    "TimestampMixin",
    "JSONType",
    "Account",
    "TikTokAuthToken",
    "TikTokShop",
    "TikTokUserInfo",
    "TikTokVideo",
    "TikTokVideoAnalytics",
    "ShopOrder",
    "ShopProduct",
    "ShopSettlement",
    "ShopPerformance",
]
