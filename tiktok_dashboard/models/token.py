"""
OAuth credentials for the personal TikTok API
"""
from sqlalchemy import Column, String, Text, DateTime

from tiktok_dashboard.core.database import Base
from .base import UUIDMixin, TimestampMixin


class TikTokAuthToken(Base, UUIDMixin, TimestampMixin):
    """
    One row per dashboard account; replaced on re-auth, mutated on refresh
    """
    __tablename__ = "tiktok_auth_tokens"

    account_id = Column(String(64), nullable=False, unique=True, index=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    token_type = Column(String(30), default="Bearer")
    expires_at = Column(DateTime, nullable=False)
    refresh_expires_at = Column(DateTime)
    scope = Column(Text)
    open_id = Column(String(200))

    def __repr__(self):
        return f"<TikTokAuthToken {self.account_id} expires={self.expires_at}>"
