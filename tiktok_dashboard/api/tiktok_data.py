"""
TikTok personal-account data - stored snapshots and manual sync
"""
from typing import Optional
import logging

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session, joinedload

from tiktok_dashboard.core.database import get_db
from tiktok_dashboard.core.errors import NotConnectedError, error_response
from tiktok_dashboard.integrations import TikTokClient
from tiktok_dashboard.models import TikTokUserInfo, TikTokVideo
from tiktok_dashboard.schemas import TikTokSyncRequest
from tiktok_dashboard.services import TikTokSyncService
from .deps import get_tiktok_client

logger = logging.getLogger(__name__)

tiktok_data_router = APIRouter(prefix="/tiktok", tags=["tiktok-data"])


def _serialize_user(user: TikTokUserInfo):
    return {
        "accountId": user.account_id,
        "openId": user.open_id,
        "unionId": user.union_id,
        "displayName": user.display_name,
        "avatarUrl": user.avatar_url,
        "bioDescription": user.bio_description,
        "followerCount": user.follower_count,
        "followingCount": user.following_count,
        "likesCount": user.likes_count,
        "videoCount": user.video_count,
        "isVerified": user.is_verified,
        "syncedAt": user.synced_at.isoformat() if user.synced_at else None,
    }


def _serialize_video(video: TikTokVideo):
    analytics = video.analytics
    return {
        "videoId": video.video_id,
        "title": video.title,
        "description": video.description,
        "coverImageUrl": video.cover_image_url,
        "shareUrl": video.share_url,
        "embedLink": video.embed_link,
        "duration": video.duration,
        "createTime": video.create_time.isoformat() if video.create_time else None,
        "analytics": {
            "likeCount": analytics.like_count,
            "commentCount": analytics.comment_count,
            "shareCount": analytics.share_count,
            "viewCount": analytics.view_count,
            "engagementRate": analytics.engagement_rate,
        } if analytics else None,
    }


@tiktok_data_router.get("/user/{account_id}")
async def get_user(account_id: str, db: Session = Depends(get_db)):
    try:
        user = db.query(TikTokUserInfo).filter(TikTokUserInfo.account_id == account_id).first()
        if not user:
            return error_response("No TikTok user data found. Please sync first.", 404)
        return {"success": True, "data": _serialize_user(user)}
    except Exception as e:
        logger.error(f"Error fetching TikTok user for {account_id}: {e}")
        return error_response(str(e))


@tiktok_data_router.get("/videos/{account_id}")
async def get_videos(
    account_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(TikTokVideo).filter(TikTokVideo.account_id == account_id)
        total = query.count()
        videos = (
            query.options(joinedload(TikTokVideo.analytics))
            .order_by(TikTokVideo.create_time.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "success": True,
            "data": [_serialize_video(v) for v in videos],
            "total": total,
            "limit": limit,
            "offset": offset,
        }
    except Exception as e:
        logger.error(f"Error fetching TikTok videos for {account_id}: {e}")
        return error_response(str(e))


@tiktok_data_router.get("/analytics/{account_id}")
async def get_analytics(account_id: str, db: Session = Depends(get_db)):
    """Totals and averages across every synced video"""
    try:
        videos = (
            db.query(TikTokVideo)
            .options(joinedload(TikTokVideo.analytics))
            .filter(TikTokVideo.account_id == account_id)
            .all()
        )
        with_stats = [v for v in videos if v.analytics]

        total_views = sum(v.analytics.view_count or 0 for v in with_stats)
        total_likes = sum(v.analytics.like_count or 0 for v in with_stats)
        total_comments = sum(v.analytics.comment_count or 0 for v in with_stats)
        total_shares = sum(v.analytics.share_count or 0 for v in with_stats)
        avg_engagement = (
            sum(v.analytics.engagement_rate or 0 for v in with_stats) / len(with_stats) if with_stats else 0.0
        )
        top_videos = sorted(with_stats, key=lambda v: v.analytics.view_count or 0, reverse=True)[:5]

        user = db.query(TikTokUserInfo).filter(TikTokUserInfo.account_id == account_id).first()

        return {
            "success": True,
            "data": {
                "videoCount": len(videos),
                "followerCount": user.follower_count if user else 0,
                "totalViews": total_views,
                "totalLikes": total_likes,
                "totalComments": total_comments,
                "totalShares": total_shares,
                "averageEngagementRate": round(avg_engagement, 2),
                "topVideos": [_serialize_video(v) for v in top_videos],
            },
        }
    except Exception as e:
        logger.error(f"Error computing TikTok analytics for {account_id}: {e}")
        return error_response(str(e))


@tiktok_data_router.post("/sync/{account_id}")
async def sync_account(
    account_id: str,
    body: Optional[TikTokSyncRequest] = Body(default=None),
    db: Session = Depends(get_db),
    client: TikTokClient = Depends(get_tiktok_client),
):
    sync_type = body.sync_type if body else "all"
    service = TikTokSyncService(db, client)
    try:
        if sync_type == "user":
            result = {"user": await service.sync_user_data(account_id)}
        elif sync_type == "videos":
            result = {"videos": await service.sync_videos(account_id)}
        else:
            result = await service.sync_all_data(account_id)
        return {"success": True, "message": f"TikTok {sync_type} sync completed", "data": result}
    except NotConnectedError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"TikTok sync failed for {account_id}: {e}")
        return error_response(str(e))


@tiktok_data_router.get("/sync/status/{account_id}")
async def sync_status(
    account_id: str,
    db: Session = Depends(get_db),
    client: TikTokClient = Depends(get_tiktok_client),
):
    try:
        return {"success": True, "data": TikTokSyncService(db, client).get_sync_status(account_id)}
    except Exception as e:
        logger.error(f"Error reading TikTok sync status for {account_id}: {e}")
        return error_response(str(e))
