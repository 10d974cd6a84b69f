"""
Shop authorization - state blob and the shared code-exchange completion
"""
import base64
import binascii
import json
import secrets
from typing import Optional, List
import logging

from sqlalchemy.orm import Session

from tiktok_dashboard.integrations import TikTokShopClient, TikTokAPIError
from tiktok_dashboard.models import TikTokShop
from tiktok_dashboard.services import credential_service

logger = logging.getLogger(__name__)


def encode_state(account_id: str) -> str:
    """base64(JSON {accountId, random}); the random part only avoids collisions"""
    payload = json.dumps({"accountId": account_id, "random": secrets.token_hex(32)})
    return base64.b64encode(payload.encode()).decode()


def decode_state(state: Optional[str]) -> Optional[str]:
    """Account id carried by the state, or None when it cannot be recovered"""
    if not state:
        return None
    try:
        data = json.loads(base64.b64decode(state, validate=False).decode())
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.warning("Could not decode TikTok Shop OAuth state")
        return None
    if not isinstance(data, dict):
        return None
    account_id = data.get("accountId")
    if not isinstance(account_id, str) or not account_id:
        return None
    return account_id


async def complete_authorization(
    db: Session,
    client: TikTokShopClient,
    code: str,
    account_id: str,
) -> List[TikTokShop]:
    """
    Exchange the code, list the authorized shops and upsert each one
    under (account_id, shop_id).
    """
    token = await client.exchange_code_for_tokens(code)
    logger.info(f"TikTok Shop token issued for account {account_id} (seller: {token.seller_name})")

    shops = await client.get_authorized_shops(token.access_token)
    if not shops:
        raise TikTokAPIError("No authorized shops found for this seller")

    return credential_service.save_shops(db, account_id, shops, token)
