"""
Shared route dependencies
"""
from urllib.parse import urlencode

from fastapi.responses import RedirectResponse

from tiktok_dashboard.core.config import settings, get_tiktok_config, get_shop_config
from tiktok_dashboard.integrations import TikTokClient, TikTokShopClient
from tiktok_dashboard.services.oauth_state import OAuthStateStore, oauth_state_store


def get_tiktok_client() -> TikTokClient:
    return TikTokClient(get_tiktok_config())


def get_shop_client() -> TikTokShopClient:
    return TikTokShopClient(get_shop_config())


def get_oauth_state_store() -> OAuthStateStore:
    return oauth_state_store


def frontend_redirect(**params) -> RedirectResponse:
    """Browser-facing outcome: back to the dashboard with the result in the query string"""
    query = urlencode({k: v for k, v in params.items() if v is not None})
    return RedirectResponse(url=f"{settings.FRONTEND_URL}?{query}", status_code=302)
