"""
TikTok personal-account OAuth (authorization code + PKCE)
"""
import json
from typing import Optional
import logging

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from tiktok_dashboard.core.database import get_db
from tiktok_dashboard.core.errors import NotConnectedError, OAuthStateError, error_response
from tiktok_dashboard.integrations import TikTokClient, generate_pkce
from tiktok_dashboard.models import Account
from tiktok_dashboard.schemas import AuthStartRequest
from tiktok_dashboard.services import credential_service, token_service, TikTokSyncService
from tiktok_dashboard.services.oauth_state import OAuthStateStore
from .deps import get_tiktok_client, get_oauth_state_store, frontend_redirect

logger = logging.getLogger(__name__)

tiktok_auth_router = APIRouter(prefix="/tiktok/auth", tags=["tiktok-auth"])


@tiktok_auth_router.post("/start")
async def start_auth(
    body: Optional[AuthStartRequest] = Body(default=None),
    client: TikTokClient = Depends(get_tiktok_client),
    state_store: OAuthStateStore = Depends(get_oauth_state_store),
):
    """Create a CSRF/PKCE session and return the TikTok authorization URL"""
    try:
        account_id = body.account_id if body else None
        code_verifier, code_challenge = generate_pkce()
        csrf_token = state_store.create(code_verifier, account_id)
        auth_url = client.build_auth_url(csrf_token, code_challenge, account_id)
        logger.info(f"Started TikTok OAuth for account {account_id or '(new)'}")
        return {"success": True, "authUrl": auth_url, "csrfToken": csrf_token}
    except Exception as e:
        logger.error(f"Error starting TikTok OAuth: {e}")
        return error_response(str(e))


def _parse_state(state: str):
    try:
        data = json.loads(state)
    except ValueError:
        raise OAuthStateError("Invalid state parameter")
    if not isinstance(data, dict) or not data.get("csrf"):
        raise OAuthStateError("Invalid state parameter")
    return data


@tiktok_auth_router.get("/callback")
async def auth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    client: TikTokClient = Depends(get_tiktok_client),
    state_store: OAuthStateStore = Depends(get_oauth_state_store),
):
    """
    TikTok redirects the browser here. Every outcome is a redirect to the frontend.
    """
    if error:
        logger.warning(f"TikTok OAuth denied: {error} {error_description or ''}")
        return frontend_redirect(tiktok_error=error_description or error)

    try:
        if not code or not state:
            raise OAuthStateError("Missing code or state parameter")

        state_data = _parse_state(state)
        session = state_store.pop(state_data["csrf"])
        if session is None:
            raise OAuthStateError("Invalid or expired CSRF token")

        token = await client.get_access_token(code, session.code_verifier)

        account_id = state_data.get("accountId") or session.account_id
        if not account_id:
            account = Account(name="TikTok account")
            db.add(account)
            db.commit()
            account_id = account.id
            logger.info(f"Created account {account_id} for new TikTok connection")

        credential_service.save_account_token(db, account_id, token)
        logger.info(f"TikTok account connected: {account_id} (open_id={token.open_id})")

        # Initial sync is best effort
        try:
            await TikTokSyncService(db, client).sync_all_data(account_id)
        except Exception as e:
            logger.error(f"Initial TikTok sync failed for account {account_id}: {e}")

        return frontend_redirect(tiktok_connected="true", account_id=account_id)

    except Exception as e:
        logger.error(f"TikTok OAuth callback failed: {e}")
        return frontend_redirect(tiktok_error=str(e))


@tiktok_auth_router.post("/refresh/{account_id}")
async def refresh_token(
    account_id: str,
    db: Session = Depends(get_db),
    client: TikTokClient = Depends(get_tiktok_client),
):
    try:
        row = await token_service.refresh_account_token(db, client, account_id)
        return {
            "success": True,
            "data": {"expiresAt": row.expires_at.isoformat(), "scope": row.scope},
        }
    except NotConnectedError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error refreshing TikTok token for {account_id}: {e}")
        return error_response(str(e))


@tiktok_auth_router.delete("/disconnect/{account_id}")
async def disconnect(account_id: str, db: Session = Depends(get_db)):
    try:
        credential_service.delete_account_token(db, account_id)
        return {"success": True, "message": "TikTok account disconnected"}
    except Exception as e:
        logger.error(f"Error disconnecting TikTok account {account_id}: {e}")
        return error_response(str(e))


@tiktok_auth_router.get("/status/{account_id}")
async def auth_status(account_id: str, db: Session = Depends(get_db)):
    try:
        row = credential_service.get_account_token(db, account_id)
        if not row:
            return {"success": True, "data": {"connected": False}}
        return {
            "success": True,
            "data": {
                "connected": True,
                "expiresAt": row.expires_at.isoformat(),
                "needsRefresh": token_service.needs_refresh(row.expires_at),
                "scope": row.scope,
                "openId": row.open_id,
            },
        }
    except Exception as e:
        logger.error(f"Error reading TikTok status for {account_id}: {e}")
        return error_response(str(e))
