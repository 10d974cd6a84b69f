"""
Dashboard account - the owner every TikTok credential hangs off
"""
import uuid
from sqlalchemy import Column, String, Text

from tiktok_dashboard.core.database import Base
from .base import TimestampMixin


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False, default="")
    tiktok_handle = Column(String(200))
    avatar_url = Column(Text)
    status = Column(String(30), default="active")

    def __repr__(self):
        return f"<Account {self.id} {self.tiktok_handle or self.name}>"
