"""
Token lifecycle - refresh tokens that are inside the expiry buffer before use
"""
from datetime import datetime, timedelta
from typing import Optional
import logging

from sqlalchemy.orm import Session

from tiktok_dashboard.core.config import settings
from tiktok_dashboard.core.errors import NotConnectedError
from tiktok_dashboard.integrations import TikTokClient, TikTokShopClient, TikTokAPIError
from tiktok_dashboard.integrations.base import utcnow
from tiktok_dashboard.models import TikTokAuthToken, TikTokShop
from tiktok_dashboard.services import credential_service

logger = logging.getLogger(__name__)


def needs_refresh(
    expires_at: Optional[datetime],
    now: Optional[datetime] = None,
    buffer_seconds: Optional[int] = None,
) -> bool:
    """True iff expires_at - now < buffer (5 minutes by default); a missing expiry counts as expired"""
    if expires_at is None:
        return True
    now = now or utcnow()
    if buffer_seconds is None:
        buffer_seconds = settings.TOKEN_REFRESH_BUFFER_SECONDS
    return expires_at - now < timedelta(seconds=buffer_seconds)


# ========== Personal account ==========

def require_account_token(db: Session, account_id: str) -> TikTokAuthToken:
    token = credential_service.get_account_token(db, account_id)
    if not token:
        raise NotConnectedError("TikTok account not connected")
    return token


async def refresh_account_token(db: Session, client: TikTokClient, account_id: str) -> TikTokAuthToken:
    """Force a refresh and persist the new tokens"""
    row = require_account_token(db, account_id)
    if not row.refresh_token:
        raise TikTokAPIError("No refresh token stored for this account")

    logger.info(f"Refreshing TikTok token for account {account_id}")
    token = await client.refresh_access_token(row.refresh_token)
    return credential_service.update_account_token(db, row, token)


async def get_valid_access_token(db: Session, client: TikTokClient, account_id: str) -> str:
    """Stored access token, refreshed first when it is inside the expiry buffer"""
    row = require_account_token(db, account_id)
    if needs_refresh(row.expires_at):
        row = await refresh_account_token(db, client, account_id)
    return row.access_token


# ========== Shops ==========

async def refresh_shop_token(db: Session, client: TikTokShopClient, shop: TikTokShop) -> TikTokShop:
    if not shop.refresh_token:
        raise TikTokAPIError("No refresh token stored for this shop")

    logger.info(f"Refreshing TikTok Shop token for {shop.account_id}:{shop.shop_id}")
    token = await client.refresh_access_token(shop.refresh_token)
    credential_service.update_shop_tokens(db, shop, token)
    return shop


async def ensure_shop_token(db: Session, client: TikTokShopClient, shop: TikTokShop) -> TikTokShop:
    if needs_refresh(shop.token_expires_at):
        shop = await refresh_shop_token(db, client, shop)
    return shop


async def get_shop_with_token(
    db: Session,
    client: TikTokShopClient,
    account_id: str,
    shop_id: Optional[str] = None,
) -> TikTokShop:
    """The requested shop (or the account's first) with a token good for the next call"""
    shop = credential_service.get_shop(db, account_id, shop_id)
    if not shop:
        raise NotConnectedError("TikTok Shop not connected")
    return await ensure_shop_token(db, client, shop)
