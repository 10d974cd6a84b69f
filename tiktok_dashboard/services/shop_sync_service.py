"""
Shop Sync Service - orders, products, settlements and daily performance per shop
"""
from typing import Optional, List, Dict, Any, Callable, Awaitable
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
import asyncio
import logging
import time

from sqlalchemy import func
from sqlalchemy.orm import Session

from tiktok_dashboard.core.config import settings
from tiktok_dashboard.integrations import TikTokShopClient
from tiktok_dashboard.integrations.base import utcnow, from_timestamp
from tiktok_dashboard.models import TikTokShop, ShopOrder, ShopProduct, ShopSettlement, ShopPerformance
from tiktok_dashboard.services import credential_service, token_service

logger = logging.getLogger(__name__)

SYNC_TYPES = ("orders", "products", "settlements", "performance")


# ========== Field helpers ==========

def _decimal(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    if isinstance(value, dict):
        value = value.get("amount")
        if value in (None, ""):
            return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _require_id(record: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        if record.get(key):
            return str(record[key])
    raise ValueError(f"record has no {keys[0]}")


def _first(items: Any) -> Dict[str, Any]:
    if isinstance(items, list) and items:
        return items[0] or {}
    return {}


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _metric(interval: Dict[str, Any], *keys: str) -> Any:
    """Performance metrics arrive as scalars, {amount} objects or lists of those"""
    for key in keys:
        value = interval.get(key)
        if isinstance(value, list):
            value = _first(value)
        if isinstance(value, dict):
            value = value.get("amount", value.get("value"))
        if value not in (None, ""):
            return value
    return None


# ========== Normalizers ==========

def normalize_order(order: Dict[str, Any], shop: TikTokShop) -> Dict[str, Any]:
    payment = order.get("payment") or order.get("payment_info") or {}
    return {
        "order_id": _require_id(order, "id", "order_id"),
        "shop_id": shop.shop_id,
        "account_id": shop.account_id,
        "order_status": order.get("status") or order.get("order_status"),
        "order_amount": _decimal(payment.get("total_amount")) or Decimal("0"),
        "currency": payment.get("currency") or "USD",
        "payment_method": order.get("payment_method_name"),
        "shipping_provider": order.get("shipping_provider"),
        "tracking_number": order.get("tracking_number"),
        "buyer_uid": order.get("user_id") or order.get("buyer_uid"),
        "created_time": from_timestamp(order.get("create_time")),
        "updated_time": from_timestamp(order.get("update_time")),
        "line_items": order.get("line_items") or [],
        "recipient_address": order.get("recipient_address") or {},
    }


def normalize_product(product: Dict[str, Any], shop: TikTokShop) -> Dict[str, Any]:
    sku = _first(product.get("skus"))
    price = sku.get("price") or {}
    inventory = _first(sku.get("inventory")) or _first(sku.get("stock_infos"))
    image = _first(product.get("main_images")) or _first(product.get("images"))
    image_urls = image.get("urls") or image.get("url_list") or []

    return {
        "product_id": _require_id(product, "id", "product_id"),
        "shop_id": shop.shop_id,
        "account_id": shop.account_id,
        "name": product.get("title") or product.get("name"),
        "sku": sku.get("seller_sku"),
        "status": product.get("status"),
        "price": _decimal(price.get("sale_price") or price.get("original_price") or price.get("tax_exclusive_price")),
        "currency": price.get("currency"),
        "stock_quantity": _int(inventory.get("quantity", inventory.get("available_stock"))),
        "sales_count": _int(_first(product.get("sales_regions")).get("sales_count")),
        "main_image_url": image_urls[0] if image_urls else None,
        "created_time": from_timestamp(product.get("create_time")),
        "updated_time": from_timestamp(product.get("update_time")),
    }


def normalize_settlement(statement: Dict[str, Any], shop: TikTokShop) -> Dict[str, Any]:
    return {
        "settlement_id": _require_id(statement, "id"),
        "shop_id": shop.shop_id,
        "account_id": shop.account_id,
        "settlement_time": from_timestamp(statement.get("statement_time") or statement.get("settlement_time")),
        "currency": statement.get("currency"),
        "settlement_amount": _decimal(statement.get("settlement_amount")) or Decimal("0"),
        "revenue_amount": _decimal(statement.get("revenue_amount")) or Decimal("0"),
        "fee_amount": _decimal(statement.get("fee_amount")) or Decimal("0"),
        "adjustment_amount": _decimal(statement.get("adjustment_amount")) or Decimal("0"),
        "status": statement.get("payment_status") or statement.get("status"),
    }


def normalize_performance(performance: Dict[str, Any], shop: TikTokShop, day: date) -> Dict[str, Any]:
    interval = _first(performance.get("intervals")) or performance
    return {
        "shop_id": shop.shop_id,
        "account_id": shop.account_id,
        "date": day,
        "orders_count": _int(_metric(interval, "orders", "order_count")),
        "gross_revenue": _decimal(_metric(interval, "gmv", "gross_revenue")) or Decimal("0"),
        "items_sold": _int(_metric(interval, "units_sold", "items_sold")),
        "average_order_value": _decimal(_metric(interval, "avg_order_value", "average_order_value")) or Decimal("0"),
        "shop_rating": _decimal(_metric(interval, "shop_rating", "rating")),
        "performance_data": performance,
    }


class ShopSyncService:
    """
    Sequential, page-token driven sync for TikTok Shop data
    """

    PAGE_SIZE = 50

    def __init__(
        self,
        db: Session,
        client: TikTokShopClient,
        page_delay: Optional[float] = None,
        lookback_days: Optional[int] = None,
    ):
        self.db = db
        self.client = client
        self.page_delay = settings.SYNC_PAGE_DELAY_SECONDS if page_delay is None else page_delay
        self.lookback_days = lookback_days or settings.SYNC_LOOKBACK_DAYS

    def _time_window(self):
        now = int(time.time())
        return now - self.lookback_days * 24 * 60 * 60, now

    async def _paginate(
        self,
        label: str,
        shop: TikTokShop,
        fetch_page: Callable[[Optional[str]], Awaitable[Dict[str, Any]]],
        list_keys: List[str],
        store: Callable[[Dict[str, Any]], None],
    ) -> Dict[str, int]:
        """
        Follow next_page_token until the vendor stops returning one.
        A record that fails to store is logged and counted, never fatal.
        """
        stats = {"fetched": 0, "synced": 0, "failed": 0, "pages": 0}
        page_token = None

        while True:
            data = await fetch_page(page_token)
            stats["pages"] += 1

            records = []
            for key in list_keys:
                if data.get(key):
                    records = data[key]
                    break

            for record in records:
                stats["fetched"] += 1
                try:
                    store(record)
                    stats["synced"] += 1
                except Exception as e:
                    self.db.rollback()
                    logger.error(f"Error syncing {label} record for shop {shop.shop_id}: {e}")
                    stats["failed"] += 1

            next_token = data.get("next_page_token")
            if not next_token or next_token == page_token:
                break
            page_token = next_token
            await asyncio.sleep(self.page_delay)

        logger.info(
            f"[{shop.shop_name or shop.shop_id}] {label}: fetched={stats['fetched']}, "
            f"synced={stats['synced']}, failed={stats['failed']}, pages={stats['pages']}"
        )
        return stats

    async def _ensure_token(self, shop: TikTokShop):
        """Refresh in place when the token is inside the buffer; runs before every vendor call"""
        await token_service.ensure_shop_token(self.db, self.client, shop)

    def _mark_synced(self, shop: TikTokShop, kind: str):
        setattr(shop, f"{kind}_last_synced_at", utcnow())
        self.db.commit()

    # ========== Orders ==========

    async def sync_orders(self, shop: TikTokShop) -> Dict[str, int]:
        create_from, create_to = self._time_window()

        async def fetch_page(page_token):
            await self._ensure_token(shop)
            return await self.client.search_orders(
                shop.access_token,
                shop.shop_cipher,
                page_size=self.PAGE_SIZE,
                page_token=page_token,
                create_time_ge=create_from,
                create_time_lt=create_to,
            )

        def store(order):
            credential_service.upsert(self.db, ShopOrder, normalize_order(order, shop), ["order_id"])

        stats = await self._paginate("orders", shop, fetch_page, ["orders"], store)
        self._mark_synced(shop, "orders")
        return stats

    # ========== Products ==========

    async def sync_products(self, shop: TikTokShop) -> Dict[str, int]:
        async def fetch_page(page_token):
            await self._ensure_token(shop)
            return await self.client.search_products(
                shop.access_token,
                shop.shop_cipher,
                page_size=self.PAGE_SIZE,
                page_token=page_token,
            )

        def store(product):
            credential_service.upsert(self.db, ShopProduct, normalize_product(product, shop), ["product_id"])

        stats = await self._paginate("products", shop, fetch_page, ["products"], store)
        self._mark_synced(shop, "products")
        return stats

    # ========== Settlements ==========

    async def sync_settlements(self, shop: TikTokShop) -> Dict[str, int]:
        time_from, time_to = self._time_window()

        async def fetch_page(page_token):
            await self._ensure_token(shop)
            params = {
                "statement_time_ge": time_from,
                "statement_time_lt": time_to,
                "page_size": 20,
            }
            if page_token:
                params["page_token"] = page_token
            return await self.client.get_statements(shop.access_token, shop.shop_cipher, params)

        def store(statement):
            credential_service.upsert(
                self.db, ShopSettlement, normalize_settlement(statement, shop), ["settlement_id"]
            )

        stats = await self._paginate("settlements", shop, fetch_page, ["statements", "statement_list"], store)
        self._mark_synced(shop, "settlements")
        return stats

    # ========== Performance ==========

    async def sync_performance(self, shop: TikTokShop, day: Optional[date] = None) -> Dict[str, Any]:
        """Store one row per (shop, day); defaults to yesterday"""
        day = day or (utcnow().date() - timedelta(days=1))
        await self._ensure_token(shop)
        performance = await self.client.get_shop_performance(
            shop.access_token,
            shop.shop_cipher,
            start_date=day,
            end_date=day + timedelta(days=1),
        )
        credential_service.upsert(
            self.db,
            ShopPerformance,
            normalize_performance(performance, shop, day),
            ["shop_id", "date"],
        )
        self._mark_synced(shop, "performance")
        logger.info(f"[{shop.shop_name or shop.shop_id}] performance stored for {day.isoformat()}")
        return {"date": day.isoformat(), "synced": 1}

    # ========== Orchestration ==========

    async def sync_shop(self, shop: TikTokShop, sync_type: str = "all") -> Dict[str, Any]:
        """
        Run the selected kinds one after another.
        Returns {kind: {status, ...stats}}; one kind failing does not stop the others.
        """
        if sync_type != "all" and sync_type not in SYNC_TYPES:
            raise ValueError(f"Unknown sync type: {sync_type}")
        kinds = SYNC_TYPES if sync_type == "all" else (sync_type,)

        shop = await token_service.ensure_shop_token(self.db, self.client, shop)

        handlers = {
            "orders": self.sync_orders,
            "products": self.sync_products,
            "settlements": self.sync_settlements,
            "performance": self.sync_performance,
        }

        results: Dict[str, Any] = {}
        for kind in kinds:
            try:
                stats = await handlers[kind](shop)
                results[kind] = {"status": "success", **stats}
            except Exception as e:
                self.db.rollback()
                logger.error(f"[{shop.shop_name or shop.shop_id}] {kind} sync failed: {e}")
                results[kind] = {"status": "failed", "error": str(e)}
        return results

    async def sync_account(self, account_id: str, sync_type: str = "all", shop_id: Optional[str] = None) -> Dict[str, Any]:
        shops = credential_service.get_shops(self.db, account_id)
        if shop_id:
            shops = [s for s in shops if s.shop_id == shop_id]

        results = {}
        for shop in shops:
            results[shop.shop_id] = await self.sync_shop(shop, sync_type)
        return results

    async def sync_all_shops(self, sync_type: str = "all") -> Dict[str, Any]:
        """Every stored shop, sequentially; a failing shop is reported and skipped"""
        results = {}
        for shop in credential_service.get_all_shops(self.db):
            key = f"{shop.account_id}:{shop.shop_id}"
            try:
                results[key] = {"status": "success", "results": await self.sync_shop(shop, sync_type)}
            except Exception as e:
                self.db.rollback()
                logger.error(f"[{key}] Shop sync failed: {e}")
                results[key] = {"status": "failed", "error": str(e)}
        return results

    def get_sync_status(self, account_id: str) -> List[Dict[str, Any]]:
        status = []
        for shop in credential_service.get_shops(self.db, account_id):
            counts = {}
            for label, model in (
                ("orders", ShopOrder),
                ("products", ShopProduct),
                ("settlements", ShopSettlement),
            ):
                counts[label] = (
                    self.db.query(func.count(model.id)).filter(model.shop_id == shop.shop_id).scalar() or 0
                )
            status.append({
                "shopId": shop.shop_id,
                "shopName": shop.shop_name,
                "ordersLastSyncedAt": _iso(shop.orders_last_synced_at),
                "productsLastSyncedAt": _iso(shop.products_last_synced_at),
                "settlementsLastSyncedAt": _iso(shop.settlements_last_synced_at),
                "performanceLastSyncedAt": _iso(shop.performance_last_synced_at),
                "counts": counts,
            })
        return status


def _iso(value):
    return value.isoformat() if value else None
