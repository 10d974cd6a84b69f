"""
Personal-account snapshots: profile, videos, per-video analytics
"""
from sqlalchemy import Column, String, Text, Boolean, Integer, BigInteger, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from tiktok_dashboard.core.database import Base
from tiktok_dashboard.integrations.base import utcnow
from .base import UUIDMixin, TimestampMixin


class TikTokUserInfo(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "tiktok_user_info"

    account_id = Column(String(64), nullable=False, unique=True, index=True)
    open_id = Column(String(200))
    union_id = Column(String(200))
    display_name = Column(String(255))
    avatar_url = Column(Text)
    bio_description = Column(Text)
    follower_count = Column(BigInteger, default=0)
    following_count = Column(BigInteger, default=0)
    likes_count = Column(BigInteger, default=0)
    video_count = Column(Integer, default=0)
    is_verified = Column(Boolean, default=False)
    synced_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<TikTokUserInfo {self.account_id} {self.display_name}>"


class TikTokVideo(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "tiktok_videos"

    video_id = Column(String(100), nullable=False, unique=True, index=True)
    account_id = Column(String(64), nullable=False, index=True)
    title = Column(Text)
    description = Column(Text)
    cover_image_url = Column(Text)
    share_url = Column(Text)
    embed_html = Column(Text)
    embed_link = Column(Text)
    duration = Column(Integer, default=0)
    height = Column(Integer, default=0)
    width = Column(Integer, default=0)
    create_time = Column(DateTime)

    analytics = relationship("TikTokVideoAnalytics", back_populates="video", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<TikTokVideo {self.video_id}>"


class TikTokVideoAnalytics(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "tiktok_video_analytics"

    video_id = Column(ForeignKey("tiktok_videos.id", ondelete="CASCADE"), nullable=False, unique=True)
    account_id = Column(String(64), nullable=False, index=True)
    like_count = Column(BigInteger, default=0)
    comment_count = Column(BigInteger, default=0)
    share_count = Column(BigInteger, default=0)
    view_count = Column(BigInteger, default=0)
    engagement_rate = Column(Float, default=0.0)
    synced_at = Column(DateTime, default=utcnow)

    video = relationship("TikTokVideo", back_populates="analytics")

    def __repr__(self):
        return f"<TikTokVideoAnalytics {self.video_id} views={self.view_count}>"
