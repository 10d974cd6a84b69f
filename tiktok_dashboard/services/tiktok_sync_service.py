"""
TikTok Sync Service - profile, videos and per-video analytics for personal accounts
"""
from typing import Optional, Dict, Any
import asyncio
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from tiktok_dashboard.core.config import settings
from tiktok_dashboard.integrations import TikTokClient
from tiktok_dashboard.integrations.base import utcnow, from_timestamp
from tiktok_dashboard.models import Account, TikTokUserInfo, TikTokVideo, TikTokVideoAnalytics
from tiktok_dashboard.services import credential_service, token_service

logger = logging.getLogger(__name__)


def engagement_rate(likes: int, comments: int, shares: int, views: int) -> float:
    """(likes + comments + shares) / views * 100, or 0 when there are no views"""
    if not views:
        return 0.0
    return (likes + comments + shares) / views * 100


def handle_from_display_name(display_name: str) -> str:
    return "@" + "".join(display_name.split()).lower()


class TikTokSyncService:
    """
    Fetch -> normalize -> upsert for one personal account
    """

    VIDEO_PAGE_SIZE = 20

    def __init__(self, db: Session, client: TikTokClient, page_delay: Optional[float] = None):
        self.db = db
        self.client = client
        self.page_delay = settings.SYNC_PAGE_DELAY_SECONDS if page_delay is None else page_delay

    # ========== Profile ==========

    async def sync_user_data(self, account_id: str) -> Dict[str, Any]:
        access_token = await token_service.get_valid_access_token(self.db, self.client, account_id)
        user = await self.client.get_user_info(access_token)

        credential_service.upsert(
            self.db,
            TikTokUserInfo,
            {
                "account_id": account_id,
                "open_id": user.get("open_id"),
                "union_id": user.get("union_id"),
                "display_name": user.get("display_name"),
                "avatar_url": user.get("avatar_url"),
                "bio_description": user.get("bio_description"),
                "follower_count": user.get("follower_count") or 0,
                "following_count": user.get("following_count") or 0,
                "likes_count": user.get("likes_count") or 0,
                "video_count": user.get("video_count") or 0,
                "is_verified": bool(user.get("is_verified")),
                "synced_at": utcnow(),
            },
            conflict_columns=["account_id"],
        )
        logger.info(f"Synced TikTok profile for account {account_id}")

        self._update_account_profile(account_id, user)
        return user

    def _update_account_profile(self, account_id: str, user: Dict[str, Any]):
        """Best effort: a failure here never fails the sync"""
        display_name = user.get("display_name")
        if not display_name:
            return
        try:
            account = self.db.get(Account, account_id)
            if not account:
                return
            account.tiktok_handle = handle_from_display_name(display_name)
            if user.get("avatar_url"):
                account.avatar_url = user.get("avatar_url")
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Could not update account {account_id} profile fields: {e}")

    # ========== Videos ==========

    async def sync_videos(self, account_id: str) -> Dict[str, int]:
        """
        Walk every page of the video list.
        Returns: {fetched, synced, failed, pages}
        """
        stats = {"fetched": 0, "synced": 0, "failed": 0, "pages": 0}
        cursor = None

        while True:
            # Re-check each page: a long sync can cross the refresh buffer
            access_token = await token_service.get_valid_access_token(self.db, self.client, account_id)
            page = await self.client.get_video_list(access_token, cursor=cursor, max_count=self.VIDEO_PAGE_SIZE)
            stats["pages"] += 1

            for video in page.videos:
                stats["fetched"] += 1
                if self._store_video(account_id, video):
                    stats["synced"] += 1
                else:
                    stats["failed"] += 1

            if not page.has_more or page.cursor == cursor:
                break
            cursor = page.cursor
            await asyncio.sleep(self.page_delay)

        logger.info(
            f"Synced videos for account {account_id}: "
            f"fetched={stats['fetched']}, synced={stats['synced']}, failed={stats['failed']}"
        )
        return stats

    def _store_video(self, account_id: str, video: Dict[str, Any]) -> bool:
        video_id = str(video.get("id") or "")
        if not video_id:
            logger.warning(f"Skipping video without id for account {account_id}")
            return False

        try:
            credential_service.upsert(
                self.db,
                TikTokVideo,
                {
                    "video_id": video_id,
                    "account_id": account_id,
                    "title": video.get("title") or "",
                    "description": video.get("video_description") or "",
                    "cover_image_url": video.get("cover_image_url") or "",
                    "share_url": video.get("share_url") or "",
                    "embed_html": video.get("embed_html") or "",
                    "embed_link": video.get("embed_link") or "",
                    "duration": video.get("duration") or 0,
                    "height": video.get("height") or 0,
                    "width": video.get("width") or 0,
                    "create_time": from_timestamp(video.get("create_time")),
                },
                conflict_columns=["video_id"],
            )
        except Exception as e:
            logger.error(f"Error storing video {video_id}: {e}")
            return False

        try:
            row_id = self.db.query(TikTokVideo.id).filter(TikTokVideo.video_id == video_id).scalar()
            likes = video.get("like_count") or 0
            comments = video.get("comment_count") or 0
            shares = video.get("share_count") or 0
            views = video.get("view_count") or 0
            credential_service.upsert(
                self.db,
                TikTokVideoAnalytics,
                {
                    "video_id": row_id,
                    "account_id": account_id,
                    "like_count": likes,
                    "comment_count": comments,
                    "share_count": shares,
                    "view_count": views,
                    "engagement_rate": engagement_rate(likes, comments, shares, views),
                    "synced_at": utcnow(),
                },
                conflict_columns=["video_id"],
            )
        except Exception as e:
            # Video row is kept; analytics catch up on the next sync
            logger.error(f"Error storing analytics for video {video_id}: {e}")

        return True

    # ========== Orchestration ==========

    async def sync_all_data(self, account_id: str) -> Dict[str, Any]:
        logger.info(f"Starting full TikTok sync for account {account_id}")
        user = await self.sync_user_data(account_id)
        videos = await self.sync_videos(account_id)
        return {"user": user, "videos": videos}

    def get_sync_status(self, account_id: str) -> Dict[str, Any]:
        user_info = (
            self.db.query(TikTokUserInfo)
            .filter(TikTokUserInfo.account_id == account_id)
            .first()
        )
        video_count = (
            self.db.query(func.count(TikTokVideo.id))
            .filter(TikTokVideo.account_id == account_id)
            .scalar()
        )
        return {
            "lastSync": user_info.synced_at.isoformat() if user_info and user_info.synced_at else None,
            "videoCount": video_count or 0,
            "followerCount": user_info.follower_count if user_info else 0,
        }
