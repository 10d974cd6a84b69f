"""
TikTok Shop Open API Client - 202309 API family
API Documentation: https://partner.tiktokshop.com/docv2
"""
import hashlib
import hmac
import json
import time
from datetime import date
from typing import Optional, Dict, Any, List
from urllib.parse import urlencode
import logging

import httpx

from tiktok_dashboard.core.config import TikTokShopConfig
from tiktok_dashboard.core.log_config import mask_secret
from .base import BaseTikTokClient, TikTokAPIError, TokenSet

logger = logging.getLogger(__name__)

# Never part of the signed string
UNSIGNED_PARAMS = ("sign", "access_token")

# Set by the client only; caller params never override them
RESERVED_PARAMS = ("app_key", "timestamp", "shop_cipher", "sign", "access_token")


def generate_signature(path: str, params: Dict[str, Any], app_secret: str, body: Optional[str] = None) -> str:
    """
    Sign = HMAC-SHA256(secret, secret + path + sorted(key+value) + [body] + secret), hex encoded.
    `sign` and `access_token` never take part.
    """
    sign_params = {k: str(v) for k, v in params.items() if k not in UNSIGNED_PARAMS and v is not None}
    params_string = "".join(f"{k}{v}" for k, v in sorted(sign_params.items()))

    sign_string = f"{app_secret}{path}{params_string}{body or ''}{app_secret}"

    return hmac.new(
        app_secret.encode(),
        sign_string.encode(),
        hashlib.sha256,
    ).hexdigest()


class TikTokShopClient(BaseTikTokClient):
    """
    TikTok Shop seller API client.
    Every call is query-signed; the access token travels in the x-tts-access-token header.
    """
    PLATFORM_NAME = "tiktok_shop"

    ORDER_SEARCH_PATH = "/order/202309/orders/search"
    PRODUCT_SEARCH_PATH = "/product/202309/products/search"
    AUTHORIZED_SHOPS_PATH = "/authorization/202309/shops"
    STATEMENTS_PATH = "/finance/202309/statements"
    PAYMENTS_PATH = "/finance/202309/payments"
    WITHDRAWALS_PATH = "/finance/202309/withdrawals"
    UNSETTLED_PATH = "/finance/202507/orders/unsettled"
    SHOP_PERFORMANCE_PATH = "/analytics/202405/shop/performance"

    def __init__(self, config: TikTokShopConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(timeout=config.timeout, transport=transport)
        self.config = config
        logger.debug(
            f"TikTok Shop client: app_key={mask_secret(config.app_key)} "
            f"app_secret={mask_secret(config.app_secret)} api_base={config.api_base}"
        )

    def _validate_credentials(self):
        if not self.config.is_configured:
            raise TikTokAPIError("TikTok Shop API credentials not configured")

    @staticmethod
    def _unwrap(data: Dict[str, Any], context: str) -> Any:
        """Envelope {code, message, data}: code 0 is success"""
        if data.get("code") != 0:
            error_msg = data.get("message") or "Unknown error"
            logger.error(f"TikTok Shop API Error ({context}): {error_msg} - Response: {data}")
            raise TikTokAPIError(
                f"TikTok Shop API Error: {error_msg}",
                code=data.get("code"),
                log_id=data.get("request_id"),
            )
        return data.get("data") or {}

    # ========== Authentication ==========

    def build_auth_url(self, state: str) -> str:
        self._validate_credentials()
        params = {"app_key": self.config.app_key, "state": state}
        return f"{self.config.auth_base}/api/v2/authorize?{urlencode(params)}"

    async def exchange_code_for_tokens(self, auth_code: str) -> TokenSet:
        self._validate_credentials()
        params = {
            "app_key": self.config.app_key,
            "app_secret": self.config.app_secret,
            "auth_code": auth_code,
            "grant_type": "authorized_code",
        }
        return await self._token_request("/api/v2/token/get", params)

    async def refresh_access_token(self, refresh_token: str) -> TokenSet:
        self._validate_credentials()
        params = {
            "app_key": self.config.app_key,
            "app_secret": self.config.app_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        token = await self._token_request("/api/v2/token/refresh", params)
        if not token.refresh_token:
            token.refresh_token = refresh_token
        return token

    async def _token_request(self, path: str, params: Dict[str, str]) -> TokenSet:
        data = await self._send("GET", f"{self.config.auth_base}{path}", path, params=params)
        token_data = self._unwrap(data, path)
        if not token_data.get("access_token"):
            raise TikTokAPIError("TikTok Shop API Error: token response missing access_token")

        # expire_in values are treated as relative seconds
        return TokenSet(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_in=int(token_data.get("access_token_expire_in") or 86400),
            refresh_expires_in=token_data.get("refresh_token_expire_in"),
            open_id=token_data.get("open_id"),
            seller_name=token_data.get("seller_name"),
            seller_base_region=token_data.get("seller_base_region"),
        )

    # ========== Signed requests ==========

    async def make_request(
        self,
        path: str,
        access_token: str,
        shop_cipher: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Signed call against the seller API, returns the unwrapped `data`.

        GET: caller params go in the query and are signed.
        POST: only app_key/timestamp/shop_cipher are in the (signed) query;
        the JSON body (`body`, or `params` when no body is given) is sent unsigned
        unless sign_body is enabled.
        """
        self._validate_credentials()
        method = method.upper()

        query: Dict[str, Any] = {
            "app_key": self.config.app_key,
            "timestamp": str(int(time.time())),
        }
        if shop_cipher:
            query["shop_cipher"] = shop_cipher

        payload = None
        body_string = None
        if method == "GET":
            for key, value in (params or {}).items():
                if value is not None and key not in RESERVED_PARAMS:
                    query[key] = value
        else:
            payload = body if body is not None else (params or {})
            if self.config.sign_body:
                body_string = json.dumps(payload, separators=(",", ":"))

        query["sign"] = generate_signature(path, query, self.config.app_secret, body_string)

        headers = {
            "Content-Type": "application/json",
            "x-tts-access-token": access_token,
        }

        kwargs: Dict[str, Any] = {"params": query, "headers": headers}
        if payload is not None:
            if body_string is not None:
                kwargs["content"] = body_string
            else:
                kwargs["json"] = payload

        data = await self._send(method, f"{self.config.api_base}{path}", path, **kwargs)
        return self._unwrap(data, path)

    # ========== Shops ==========

    async def get_authorized_shops(self, access_token: str) -> List[Dict[str, Any]]:
        data = await self.make_request(self.AUTHORIZED_SHOPS_PATH, access_token)
        return data.get("shops") or []

    # ========== Orders & Products ==========

    async def search_orders(
        self,
        access_token: str,
        shop_cipher: str,
        page_size: int = 50,
        page_token: Optional[str] = None,
        create_time_ge: Optional[int] = None,
        create_time_lt: Optional[int] = None,
        order_status: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Returns {orders, next_page_token, total_count}
        """
        body: Dict[str, Any] = {"page_size": page_size}
        if page_token:
            body["page_token"] = page_token
        if create_time_ge is not None:
            body["create_time_ge"] = create_time_ge
        if create_time_lt is not None:
            body["create_time_lt"] = create_time_lt
        if order_status:
            body["order_status"] = order_status

        return await self.make_request(self.ORDER_SEARCH_PATH, access_token, shop_cipher, method="POST", body=body)

    async def search_products(
        self,
        access_token: str,
        shop_cipher: str,
        page_size: int = 50,
        page_token: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Returns {products, next_page_token, total_count}
        """
        body: Dict[str, Any] = {"page_size": page_size}
        if page_token:
            body["page_token"] = page_token
        if status:
            body["status"] = status

        return await self.make_request(self.PRODUCT_SEARCH_PATH, access_token, shop_cipher, method="POST", body=body)

    # ========== Finance ==========

    async def get_statements(self, access_token: str, shop_cipher: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = {"sort_field": "statement_time", "page_size": 20}
        query.update(params or {})
        return await self.make_request(self.STATEMENTS_PATH, access_token, shop_cipher, query)

    async def get_payments(self, access_token: str, shop_cipher: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = {"sort_field": "create_time", "page_size": 20}
        query.update(params or {})
        return await self.make_request(self.PAYMENTS_PATH, access_token, shop_cipher, query)

    async def get_withdrawals(self, access_token: str, shop_cipher: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = {"types": "WITHDRAW", "page_size": 20}
        query.update(params or {})
        return await self.make_request(self.WITHDRAWALS_PATH, access_token, shop_cipher, query)

    async def get_statement_transactions(
        self,
        access_token: str,
        shop_cipher: str,
        statement_id: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        path = f"/finance/202309/statements/{statement_id}/statement_transactions"
        query = {"sort_field": "order_create_time", "page_size": 20}
        query.update(params or {})
        return await self.make_request(path, access_token, shop_cipher, query)

    async def get_unsettled_orders(self, access_token: str, shop_cipher: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = {"sort_field": "order_create_time", "page_size": 20}
        query.update(params or {})
        return await self.make_request(self.UNSETTLED_PATH, access_token, shop_cipher, query)

    # ========== Analytics ==========

    async def get_shop_performance(
        self,
        access_token: str,
        shop_cipher: str,
        start_date: date,
        end_date: date,
        granularity: str = "ALL",
    ) -> Dict[str, Any]:
        """Shop-level performance for [start_date, end_date)"""
        params = {
            "start_date_ge": start_date.isoformat(),
            "end_date_lt": end_date.isoformat(),
            "granularity": granularity,
        }
        data = await self.make_request(self.SHOP_PERFORMANCE_PATH, access_token, shop_cipher, params)
        return data.get("performance") or data
