"""
TikTok personal-account API client (Login Kit + Display API v2)
API Documentation: https://developers.tiktok.com/doc/overview
"""
import base64
import hashlib
import json
import secrets
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple
from urllib.parse import urlencode
import logging

import httpx

from tiktok_dashboard.core.config import TikTokConfig
from .base import BaseTikTokClient, TikTokAPIError, TokenSet

logger = logging.getLogger(__name__)

USER_INFO_FIELDS = (
    "open_id,union_id,avatar_url,display_name,bio_description,"
    "follower_count,following_count,likes_count,video_count,is_verified"
)

VIDEO_FIELDS = (
    "id,create_time,cover_image_url,share_url,video_description,duration,height,width,"
    "title,embed_html,embed_link,like_count,comment_count,share_count,view_count"
)


@dataclass
class VideoPage:
    videos: List[Dict[str, Any]] = field(default_factory=list)
    cursor: int = 0
    has_more: bool = False


def generate_pkce() -> Tuple[str, str]:
    """
    Return (code_verifier, code_challenge) for the S256 method.
    Verifier is 32 random bytes, base64url without padding (43 chars).
    """
    verifier = base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


class TikTokClient(BaseTikTokClient):
    """
    TikTok personal-account API client
    """
    PLATFORM_NAME = "tiktok"

    def __init__(self, config: TikTokConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(timeout=config.timeout, transport=transport)
        self.config = config

    # ========== Authentication ==========

    def build_auth_url(self, csrf_token: str, code_challenge: str, account_id: Optional[str] = None) -> str:
        """Authorization URL with PKCE challenge and JSON state {csrf, accountId}"""
        state = json.dumps({"csrf": csrf_token, "accountId": account_id})
        params = {
            "client_key": self.config.client_key,
            "scope": self.config.scopes,
            "response_type": "code",
            "redirect_uri": self.config.redirect_uri,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.config.auth_url}?{urlencode(params)}"

    async def get_access_token(self, code: str, code_verifier: str) -> TokenSet:
        """Exchange authorization code + PKCE verifier for tokens"""
        form = {
            "client_key": self.config.client_key,
            "client_secret": self.config.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.config.redirect_uri,
            "code_verifier": code_verifier,
        }
        data = await self._token_request(form)
        return self._parse_token(data)

    async def refresh_access_token(self, refresh_token: str) -> TokenSet:
        form = {
            "client_key": self.config.client_key,
            "client_secret": self.config.client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        data = await self._token_request(form)
        token = self._parse_token(data)
        if not token.refresh_token:
            token.refresh_token = refresh_token
        return token

    async def _token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        data = await self._send(
            "POST",
            self.config.token_url,
            "/v2/oauth/token/",
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if data.get("error"):
            message = data.get("error_description") or data.get("error")
            logger.error(f"TikTok token endpoint error: {data}")
            raise TikTokAPIError(f"TikTok API Error: {message}", code=data.get("error"), log_id=data.get("log_id"))
        if not data.get("access_token"):
            raise TikTokAPIError("TikTok API Error: token response missing access_token")
        return data

    @staticmethod
    def _parse_token(data: Dict[str, Any]) -> TokenSet:
        return TokenSet(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in") or 86400),
            refresh_expires_in=data.get("refresh_expires_in"),
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
            open_id=data.get("open_id"),
        )

    # ========== Display API ==========

    def _check_error(self, data: Dict[str, Any]):
        # Display API reports success as error.code == "ok"
        error = data.get("error") or {}
        if error and error.get("code") != "ok":
            raise TikTokAPIError(
                f"TikTok API Error: {error.get('message') or error.get('code')}",
                code=error.get("code"),
                log_id=error.get("log_id"),
            )

    async def get_user_info(self, access_token: str) -> Dict[str, Any]:
        """Profile + stats for the token owner"""
        data = await self._send(
            "GET",
            f"{self.config.api_base}/v2/user/info/",
            "/v2/user/info/",
            params={"fields": USER_INFO_FIELDS},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        self._check_error(data)
        return (data.get("data") or {}).get("user") or {}

    async def get_video_list(self, access_token: str, cursor: Optional[int] = None, max_count: int = 20) -> VideoPage:
        """One page of the user's public videos"""
        data = await self._send(
            "POST",
            f"{self.config.api_base}/v2/video/list/",
            "/v2/video/list/",
            params={"fields": VIDEO_FIELDS},
            json={"max_count": max_count, "cursor": cursor or 0},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        self._check_error(data)

        payload = data.get("data") or {}
        return VideoPage(
            videos=payload.get("videos") or [],
            cursor=payload.get("cursor") or 0,
            has_more=bool(payload.get("has_more")),
        )
