"""
TikTok Shop finance pass-through - extra query params are forwarded to the vendor
"""
from typing import Optional, Dict, Any
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tiktok_dashboard.core.database import get_db
from tiktok_dashboard.core.errors import NotConnectedError, error_response
from tiktok_dashboard.integrations import TikTokShopClient
from tiktok_dashboard.integrations.tiktok_shop import RESERVED_PARAMS
from tiktok_dashboard.services import token_service
from .deps import get_shop_client

logger = logging.getLogger(__name__)

shop_finance_router = APIRouter(prefix="/tiktok-shop/finance", tags=["tiktok-shop-finance"])


def _forwarded_params(request: Request) -> Dict[str, Any]:
    return {
        k: v for k, v in request.query_params.items()
        if k != "shopId" and k not in RESERVED_PARAMS
    }


async def _call(db: Session, client: TikTokShopClient, account_id: str, shop_id: Optional[str], label: str, fetch):
    try:
        shop = await token_service.get_shop_with_token(db, client, account_id, shop_id)
        data = await fetch(shop)
        logger.info(f"[FinanceAPI] {label} for account {account_id}, shop {shop.shop_id}")
        return {"success": True, "data": data}
    except NotConnectedError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"[FinanceAPI] Error fetching {label} for {account_id}: {e}")
        return error_response(str(e))


@shop_finance_router.get("/statements/{account_id}")
async def get_statements(
    account_id: str,
    request: Request,
    shop_id: Optional[str] = Query(None, alias="shopId"),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    params = _forwarded_params(request)
    return await _call(
        db, client, account_id, shop_id, "statements",
        lambda shop: client.get_statements(shop.access_token, shop.shop_cipher, params),
    )


@shop_finance_router.get("/payments/{account_id}")
async def get_payments(
    account_id: str,
    request: Request,
    shop_id: Optional[str] = Query(None, alias="shopId"),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    params = _forwarded_params(request)
    return await _call(
        db, client, account_id, shop_id, "payments",
        lambda shop: client.get_payments(shop.access_token, shop.shop_cipher, params),
    )


@shop_finance_router.get("/withdrawals/{account_id}")
async def get_withdrawals(
    account_id: str,
    request: Request,
    shop_id: Optional[str] = Query(None, alias="shopId"),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    params = _forwarded_params(request)
    return await _call(
        db, client, account_id, shop_id, "withdrawals",
        lambda shop: client.get_withdrawals(shop.access_token, shop.shop_cipher, params),
    )


@shop_finance_router.get("/transactions/{account_id}/{statement_id}")
async def get_statement_transactions(
    account_id: str,
    statement_id: str,
    request: Request,
    shop_id: Optional[str] = Query(None, alias="shopId"),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    params = _forwarded_params(request)
    return await _call(
        db, client, account_id, shop_id, f"transactions of statement {statement_id}",
        lambda shop: client.get_statement_transactions(shop.access_token, shop.shop_cipher, statement_id, params),
    )


@shop_finance_router.get("/unsettled/{account_id}")
async def get_unsettled_orders(
    account_id: str,
    request: Request,
    shop_id: Optional[str] = Query(None, alias="shopId"),
    db: Session = Depends(get_db),
    client: TikTokShopClient = Depends(get_shop_client),
):
    params = _forwarded_params(request)
    return await _call(
        db, client, account_id, shop_id, "unsettled orders",
        lambda shop: client.get_unsettled_orders(shop.access_token, shop.shop_cipher, params),
    )
