"""
In-process CSRF / PKCE session store for the personal OAuth handshake.

Entries are inserted on /auth/start, removed on first use by the callback,
and evicted by the periodic sweep once older than the TTL. The map lives in
this process only: a restart drops every in-flight handshake.
"""
import secrets
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional
import logging

from tiktok_dashboard.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class OAuthSession:
    code_verifier: str
    account_id: Optional[str] = None
    created_at: float = field(default_factory=time.time)


class OAuthStateStore:
    def __init__(self, ttl_seconds: int = 600, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, OAuthSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, csrf_token: str) -> bool:
        return csrf_token in self._sessions

    def create(self, code_verifier: str, account_id: Optional[str] = None) -> str:
        """Store a new session under a fresh random CSRF token and return the token"""
        csrf_token = secrets.token_hex(32)
        self.put(csrf_token, code_verifier, account_id)
        return csrf_token

    def put(self, csrf_token: str, code_verifier: str, account_id: Optional[str] = None):
        self._sessions[csrf_token] = OAuthSession(
            code_verifier=code_verifier,
            account_id=account_id,
            created_at=self._clock(),
        )

    def _is_expired(self, session: OAuthSession, now: float) -> bool:
        return now - session.created_at > self.ttl_seconds

    def pop(self, csrf_token: str) -> Optional[OAuthSession]:
        """Single-use lookup: the entry is removed whether or not it is still valid"""
        session = self._sessions.pop(csrf_token, None)
        if session is None:
            return None
        if self._is_expired(session, self._clock()):
            logger.info("Discarded expired OAuth session on callback")
            return None
        return session

    def sweep(self) -> int:
        """Evict every entry older than the TTL, return how many were dropped"""
        now = self._clock()
        expired = [token for token, s in self._sessions.items() if self._is_expired(s, now)]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info(f"Swept {len(expired)} expired OAuth session(s), {len(self._sessions)} remaining")
        return len(expired)

    def clear(self):
        self._sessions.clear()


oauth_state_store = OAuthStateStore(ttl_seconds=settings.OAUTH_STATE_TTL_SECONDS)
