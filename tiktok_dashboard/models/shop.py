"""
TikTok Shop authorization - one row per (account, shop)
"""
from sqlalchemy import Column, String, Text, DateTime, UniqueConstraint

from tiktok_dashboard.core.database import Base
from .base import UUIDMixin, TimestampMixin


class TikTokShop(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "tiktok_shops"

    account_id = Column(String(64), nullable=False, index=True)
    shop_id = Column(String(100), nullable=False)
    shop_cipher = Column(String(255))
    shop_name = Column(String(255))
    region = Column(String(20))
    seller_type = Column(String(50))
    seller_name = Column(String(255))

    # Tokens (one seller authorization covers every shop it lists)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    token_expires_at = Column(DateTime, nullable=False)
    refresh_token_expires_at = Column(DateTime)

    # Sync metadata
    orders_last_synced_at = Column(DateTime)
    products_last_synced_at = Column(DateTime)
    settlements_last_synced_at = Column(DateTime)
    performance_last_synced_at = Column(DateTime)

    __table_args__ = (
        UniqueConstraint("account_id", "shop_id", name="uq_tiktok_shops_account_shop"),
    )

    def to_dict(self, include_tokens: bool = False):
        data = {
            "id": str(self.id),
            "account_id": self.account_id,
            "shop_id": self.shop_id,
            "shop_cipher": self.shop_cipher,
            "shop_name": self.shop_name,
            "region": self.region,
            "seller_type": self.seller_type,
            "token_expires_at": self.token_expires_at.isoformat() if self.token_expires_at else None,
            "orders_last_synced_at": _iso(self.orders_last_synced_at),
            "products_last_synced_at": _iso(self.products_last_synced_at),
            "settlements_last_synced_at": _iso(self.settlements_last_synced_at),
            "performance_last_synced_at": _iso(self.performance_last_synced_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_tokens:
            data["access_token"] = self.access_token
            data["refresh_token"] = self.refresh_token
        return data

    def __repr__(self):
        return f"<TikTokShop {self.account_id}:{self.shop_id}>"


def _iso(value):
    return value.isoformat() if value else None
