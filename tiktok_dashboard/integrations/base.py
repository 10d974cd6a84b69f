"""
Base TikTok Client - shared HTTP plumbing and token types
"""
from typing import Optional, Dict, Any
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass
import logging

import httpx

logger = logging.getLogger(__name__)


class TikTokAPIError(Exception):
    """Vendor rejected the call (envelope error) or the transport failed"""

    def __init__(self, message: str, code: Any = None, log_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.log_id = log_id


@dataclass
class TokenSet:
    """
    Normalized token response, shared by the personal and Shop flows
    """
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = 86400
    refresh_expires_in: Optional[int] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None
    open_id: Optional[str] = None

    # Shop only
    seller_name: Optional[str] = None
    seller_base_region: Optional[str] = None

    def expires_at(self, now: Optional[datetime] = None) -> datetime:
        now = now or utcnow()
        return now + timedelta(seconds=int(self.expires_in or 0))

    def refresh_expires_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        if not self.refresh_expires_in:
            return None
        now = now or utcnow()
        return now + timedelta(seconds=int(self.refresh_expires_in))


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_timestamp(value: Any) -> Optional[datetime]:
    """Vendor unix seconds -> naive UTC datetime"""
    if value in (None, "", 0, "0"):
        return None
    try:
        return datetime.fromtimestamp(int(value), timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


class BaseTikTokClient:
    """
    Common plumbing for the two TikTok platforms
    """
    PLATFORM_NAME: str = "base"

    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        # Tests inject httpx.MockTransport here
        self._transport = transport

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _send(self, method: str, url: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """
        Issue a request and decode the JSON body.
        Transport failures are logged with any response body and re-raised as TikTokAPIError.
        """
        try:
            async with self._http_client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[{self.PLATFORM_NAME}] {method} {endpoint} transport error: {e}")
            raise TikTokAPIError(f"{self.PLATFORM_NAME} request to {endpoint} failed: {e}") from e

        self._log_api_call(method, endpoint, response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(
                f"[{self.PLATFORM_NAME}] {method} {endpoint} returned non-JSON body: {response.text[:500]}"
            )
            raise TikTokAPIError(
                f"{self.PLATFORM_NAME} request to {endpoint} failed with HTTP {response.status_code}"
            ) from e

        if response.status_code >= 400 and not isinstance(data, dict):
            raise TikTokAPIError(
                f"{self.PLATFORM_NAME} request to {endpoint} failed with HTTP {response.status_code}"
            )
        if response.status_code >= 400:
            logger.error(f"[{self.PLATFORM_NAME}] {method} {endpoint} error body: {data}")

        return data

    def _log_api_call(self, method: str, endpoint: str, status_code: int):
        """Log API call for debugging"""
        logger.info(f"[{self.PLATFORM_NAME}] {method} {endpoint} -> {status_code}")
