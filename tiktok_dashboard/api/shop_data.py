"""
TikTok Shop data - live pass-through reads, manual and cron sync
"""
from datetime import date, timedelta
from typing import Optional
import logging

from fastapi import APIRouter, Body, Depends, Header, Query
from sqlalchemy.orm import Session

from tiktok_dashboard.core.config import settings
from tiktok_dashboard.core.database import get_db
from tiktok_dashboard.core.errors import NotConnectedError, error_response
from tiktok_dashboard.integrations import TikTokShopClient
from tiktok_dashboard.integrations.base import utcnow
from tiktok_dashboard.schemas import ShopSyncRequest
from tiktok_dashboard.services import credential_service, token_service, ShopSyncService
from .deps import get_shop_client

logger = logging.getLogger(__name__)

shop_data_router = APIRouter(prefix="/tiktok-shop", tags=["tiktok-shop-data"])


@shop_data_router.get("/shops/{account_id}")
async def list_shops(account_id: str, db: Session = Depends(get_db)):
    try:
        shops = credential_service.get_shops(db, account_id)
        return {"success": True, "data": [s.to_dict() for s in shops]}
    except Exception as e:
        logger.error(f"Error listing shops for {account_id}: {e}")
        return error_response(str(e))


@shop_data_router.get("/orders/{account_id}")
async def get_orders(
    account_id: str,
    shop_id: Optional[str] = Query(None, alias="shopId"),
    status: Optional[str] = Query(None),
    page_size: int = Query(20, alias="pageSize", ge=1, le=100),
    page_token: Optional[str] = Query(None, alias="pageToken"),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    try:
        shop = await token_service.get_shop_with_token(db, client, account_id, shop_id)
        data = await client.search_orders(
            shop.access_token,
            shop.shop_cipher,
            page_size=page_size,
            page_token=page_token,
            order_status=status,
        )
        return {"success": True, "data": data}
    except NotConnectedError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error fetching orders for {account_id}: {e}")
        return error_response(str(e))


@shop_data_router.get("/products/{account_id}")
async def get_products(
    account_id: str,
    shop_id: Optional[str] = Query(None, alias="shopId"),
    status: Optional[str] = Query(None),
    page_size: int = Query(20, alias="pageSize", ge=1, le=100),
    page_token: Optional[str] = Query(None, alias="pageToken"),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    try:
        shop = await token_service.get_shop_with_token(db, client, account_id, shop_id)
        data = await client.search_products(
            shop.access_token,
            shop.shop_cipher,
            page_size=page_size,
            page_token=page_token,
            status=status,
        )
        return {"success": True, "data": data}
    except NotConnectedError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error fetching products for {account_id}: {e}")
        return error_response(str(e))


@shop_data_router.get("/settlements/{account_id}")
async def get_settlements(
    account_id: str,
    shop_id: Optional[str] = Query(None, alias="shopId"),
    page_size: int = Query(20, alias="pageSize", ge=1, le=100),
    page_token: Optional[str] = Query(None, alias="pageToken"),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    try:
        shop = await token_service.get_shop_with_token(db, client, account_id, shop_id)
        params = {"page_size": page_size}
        if page_token:
            params["page_token"] = page_token
        data = await client.get_statements(shop.access_token, shop.shop_cipher, params)
        return {"success": True, "data": data}
    except NotConnectedError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error fetching settlements for {account_id}: {e}")
        return error_response(str(e))


@shop_data_router.get("/performance/{account_id}")
async def get_performance(
    account_id: str,
    shop_id: Optional[str] = Query(None, alias="shopId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    """Shop performance for [startDate, endDate), last 30 days by default"""
    end_date = end_date or utcnow().date()
    start_date = start_date or (end_date - timedelta(days=30))
    if start_date >= end_date:
        return error_response("startDate must be before endDate", 400)
    try:
        shop = await token_service.get_shop_with_token(db, client, account_id, shop_id)
        data = await client.get_shop_performance(shop.access_token, shop.shop_cipher, start_date, end_date)
        return {"success": True, "data": data}
    except NotConnectedError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error fetching performance for {account_id}: {e}")
        return error_response(str(e))


# ========== Sync ==========

@shop_data_router.post("/sync/{account_id}")
async def sync_account(
    account_id: str,
    body: Optional[ShopSyncRequest] = Body(default=None),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    sync_type = body.sync_type if body else "all"
    shop_id = body.shop_id if body else None
    try:
        if not credential_service.get_shop(db, account_id, shop_id):
            raise NotConnectedError("TikTok Shop not connected")
        results = await ShopSyncService(db, client).sync_account(account_id, sync_type, shop_id)
        return {"success": True, "message": f"Shop {sync_type} sync completed", "data": results}
    except NotConnectedError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Shop sync failed for {account_id}: {e}")
        return error_response(str(e))


@shop_data_router.get("/sync/cron")
async def sync_cron(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    """Sync every connected shop; protected by CRON_SECRET when one is configured"""
    if settings.CRON_SECRET and authorization != f"Bearer {settings.CRON_SECRET}":
        return error_response("Unauthorized", 401)
    try:
        logger.info("Cron: starting sync for all shops")
        results = await ShopSyncService(db, client).sync_all_shops()
        failed = [key for key, r in results.items() if r.get("status") != "success"]
        logger.info(f"Cron: synced {len(results) - len(failed)}/{len(results)} shops")
        return {"success": True, "data": results}
    except Exception as e:
        logger.error(f"Cron sync failed: {e}")
        return error_response(str(e))


@shop_data_router.get("/sync/status/{account_id}")
async def sync_status(
    account_id: str,
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    try:
        return {"success": True, "data": ShopSyncService(db, client).get_sync_status(account_id)}
    except Exception as e:
        logger.error(f"Error reading shop sync status for {account_id}: {e}")
        return error_response(str(e))
