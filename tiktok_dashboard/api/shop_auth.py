"""
TikTok Shop seller authorization
"""
from typing import Optional
import logging

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from tiktok_dashboard.core.database import get_db
from tiktok_dashboard.core.errors import NotConnectedError, error_response
from tiktok_dashboard.integrations import TikTokShopClient
from tiktok_dashboard.schemas import AuthStartRequest, ShopFinalizeRequest
from tiktok_dashboard.services import credential_service, token_service, shop_auth_service
from .deps import get_shop_client, frontend_redirect

logger = logging.getLogger(__name__)

shop_auth_router = APIRouter(prefix="/tiktok-shop/auth", tags=["tiktok-shop-auth"])


@shop_auth_router.post("/start")
async def start_auth(
    body: Optional[AuthStartRequest] = Body(default=None),
    client: TikTokShopClient = Depends(get_shop_client),
):
    account_id = body.account_id if body else None
    if not account_id:
        return error_response("Account ID is required", 400)
    try:
        state = shop_auth_service.encode_state(account_id)
        auth_url = client.build_auth_url(state)
        logger.info(f"Started TikTok Shop OAuth for account {account_id}")
        return {"success": True, "authUrl": auth_url}
    except Exception as e:
        logger.error(f"Error starting TikTok Shop OAuth: {e}")
        return error_response(str(e))


@shop_auth_router.get("/callback")
async def auth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    """
    Seller lands here after authorizing. Without a recoverable account id the
    code is handed to the frontend, which completes through /finalize.
    """
    if not code:
        return frontend_redirect(tiktok_error="Missing authorization code")

    account_id = shop_auth_service.decode_state(state)
    if not account_id:
        logger.info("TikTok Shop callback without account id, deferring to finalize")
        return frontend_redirect(tiktok_shop_code=code, needs_account_selection="true")

    try:
        shops = await shop_auth_service.complete_authorization(db, client, code, account_id)
        return frontend_redirect(
            tiktok_connected="true",
            account_id=account_id,
            shop_count=len(shops),
        )
    except Exception as e:
        logger.error(f"TikTok Shop OAuth callback failed: {e}")
        return frontend_redirect(tiktok_error=str(e))


@shop_auth_router.post("/finalize")
async def finalize_auth(
    body: ShopFinalizeRequest,
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    """Second phase of a callback that arrived without account context"""
    try:
        shops = await shop_auth_service.complete_authorization(db, client, body.code, body.account_id)
        return {
            "success": True,
            "data": {
                "accountId": body.account_id,
                "shops": [s.to_dict() for s in shops],
            },
        }
    except Exception as e:
        logger.error(f"TikTok Shop finalize failed for {body.account_id}: {e}")
        return error_response(str(e))


@shop_auth_router.post("/refresh/{account_id}")
async def refresh_token(
    account_id: str,
    shop_id: Optional[str] = Query(None, alias="shopId"),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    try:
        shop = credential_service.get_shop(db, account_id, shop_id)
        if not shop:
            raise NotConnectedError("TikTok Shop not connected")
        shop = await token_service.refresh_shop_token(db, client, shop)
        return {
            "success": True,
            "data": {"shopId": shop.shop_id, "expiresAt": shop.token_expires_at.isoformat()},
        }
    except NotConnectedError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error refreshing TikTok Shop token for {account_id}: {e}")
        return error_response(str(e))


@shop_auth_router.delete("/disconnect/{account_id}")
async def disconnect_all(account_id: str, db: Session = Depends(get_db)):
    try:
        deleted = credential_service.delete_shops(db, account_id)
        return {"success": True, "message": f"Disconnected {deleted} shop(s)"}
    except Exception as e:
        logger.error(f"Error disconnecting TikTok shops for {account_id}: {e}")
        return error_response(str(e))


@shop_auth_router.delete("/disconnect/{account_id}/{shop_id}")
async def disconnect_shop(account_id: str, shop_id: str, db: Session = Depends(get_db)):
    try:
        deleted = credential_service.delete_shops(db, account_id, shop_id)
        if not deleted:
            return error_response("Shop not found", 404)
        return {"success": True, "message": "Shop disconnected"}
    except Exception as e:
        logger.error(f"Error disconnecting TikTok shop {account_id}:{shop_id}: {e}")
        return error_response(str(e))


@shop_auth_router.get("/status/{account_id}")
async def auth_status(account_id: str, db: Session = Depends(get_db)):
    try:
        shops = credential_service.get_shops(db, account_id)
        return {
            "success": True,
            "data": {
                "connected": bool(shops),
                "shopCount": len(shops),
                "shops": [
                    {**s.to_dict(), "needsRefresh": token_service.needs_refresh(s.token_expires_at)}
                    for s in shops
                ],
            },
        }
    except Exception as e:
        logger.error(f"Error reading TikTok Shop status for {account_id}: {e}")
        return error_response(str(e))
