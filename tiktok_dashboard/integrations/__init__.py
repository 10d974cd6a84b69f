# Integrations Package - TikTok platform API clients
from .base import BaseTikTokClient, TikTokAPIError, TokenSet
from .tiktok import TikTokClient, VideoPage, generate_pkce
from .tiktok_shop import TikTokShopClient, generate_signature

__all__ = [
    "BaseTikTokClient",
    "TikTokAPIError",
    "TokenSet",
    "TikTokClient",
    "VideoPage",
    "generate_pkce",
    "TikTokShopClient",
    "generate_signature",
]
