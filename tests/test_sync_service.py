import json
from datetime import date, timedelta

import pytest

from tiktok_dashboard.integrations.base import utcnow
from tiktok_dashboard.models import (
    ShopOrder,
    ShopPerformance,
    TikTokAuthToken,
    TikTokShop,
    TikTokVideo,
    TikTokVideoAnalytics,
)
from tiktok_dashboard.services import ShopSyncService, TikTokSyncService
from tiktok_dashboard.services.tiktok_sync_service import engagement_rate, handle_from_display_name


pytestmark = pytest.mark.anyio

VIDEO_PATH = "/v2/video/list/"
ORDERS_PATH = "/order/202309/orders/search"


def _video_page(videos, cursor, has_more):
    return {"data": {"videos": videos, "cursor": cursor, "has_more": has_more}, "error": {"code": "ok"}}


@pytest.fixture
def connected_account(db_session):
    db_session.add(
        TikTokAuthToken(
            account_id="acc-1",
            access_token="act.1",
            refresh_token="rft.1",
            expires_at=utcnow() + timedelta(hours=12),
            open_id="open-1",
        )
    )
    db_session.commit()
    return "acc-1"


def test_engagement_rate():
    assert engagement_rate(5, 3, 2, 200) == 5.0
    assert engagement_rate(5, 3, 2, 0) == 0.0


def test_handle_from_display_name():
    assert handle_from_display_name("Jane  Doe Shop") == "@janedoeshop"


async def test_video_sync_walks_pages_until_has_more_is_false(db_session, tiktok_client, vendor, connected_account):
    vendor.add(
        "POST",
        VIDEO_PATH,
        _video_page(
            [
                {"id": "v1", "like_count": 5, "comment_count": 3, "share_count": 2, "view_count": 200},
                {"id": "v2", "view_count": 0},
            ],
            cursor=1700000000,
            has_more=True,
        ),
        _video_page([], cursor=1700000000, has_more=False),
    )

    stats = await TikTokSyncService(db_session, tiktok_client, page_delay=0).sync_videos(connected_account)

    assert stats == {"fetched": 2, "synced": 2, "failed": 0, "pages": 2}
    second_body = json.loads(vendor.calls(VIDEO_PATH)[1].content)
    assert second_body["cursor"] == 1700000000

    rates = {
        row.video_id: analytics.engagement_rate
        for row, analytics in db_session.query(TikTokVideo, TikTokVideoAnalytics).join(
            TikTokVideoAnalytics, TikTokVideoAnalytics.video_id == TikTokVideo.id
        )
    }
    assert rates == {"v1": pytest.approx(5.0), "v2": 0.0}


async def test_video_sync_is_idempotent(db_session, tiktok_client, vendor, connected_account):
    vendor.add("POST", VIDEO_PATH, _video_page([{"id": "v1", "view_count": 10, "like_count": 1}], 0, False))
    service = TikTokSyncService(db_session, tiktok_client, page_delay=0)

    await service.sync_videos(connected_account)
    await service.sync_videos(connected_account)

    assert db_session.query(TikTokVideo).count() == 1
    assert db_session.query(TikTokVideoAnalytics).count() == 1


async def test_video_without_id_is_counted_and_skipped(db_session, tiktok_client, vendor, connected_account):
    vendor.add("POST", VIDEO_PATH, _video_page([{"title": "no id"}, {"id": "v9"}], 0, False))

    stats = await TikTokSyncService(db_session, tiktok_client, page_delay=0).sync_videos(connected_account)

    assert stats["synced"] == 1
    assert stats["failed"] == 1
    assert [v.video_id for v in db_session.query(TikTokVideo).all()] == ["v9"]


async def test_sync_status_reports_counts(db_session, tiktok_client, vendor, connected_account):
    vendor.add(
        "GET",
        "/v2/user/info/",
        {"data": {"user": {"open_id": "open-1", "display_name": "Jane", "follower_count": 7}}, "error": {"code": "ok"}},
    )
    vendor.add("POST", VIDEO_PATH, _video_page([{"id": "v1"}], 0, False))
    service = TikTokSyncService(db_session, tiktok_client, page_delay=0)

    await service.sync_all_data(connected_account)
    status = service.get_sync_status(connected_account)

    assert status["videoCount"] == 1
    assert status["followerCount"] == 7
    assert status["lastSync"] is not None


async def test_order_sync_follows_page_tokens_and_isolates_bad_records(
    db_session, shop_client, vendor, envelope, shop_factory
):
    shop = shop_factory()
    vendor.add(
        "POST",
        ORDERS_PATH,
        envelope({
            "orders": [
                {"id": "o1", "status": "AWAITING_SHIPMENT", "payment": {"total_amount": "19.99", "currency": "USD"}},
                {"status": "BROKEN"},
            ],
            "next_page_token": "page-2",
        }),
        envelope({"orders": [{"id": "o2", "payment": {"total_amount": "5"}}], "next_page_token": ""}),
    )

    stats = await ShopSyncService(db_session, shop_client, page_delay=0).sync_orders(shop)

    assert stats == {"fetched": 3, "synced": 2, "failed": 1, "pages": 2}
    assert json.loads(vendor.calls(ORDERS_PATH)[1].content)["page_token"] == "page-2"
    orders = {o.order_id: o for o in db_session.query(ShopOrder).all()}
    assert set(orders) == {"o1", "o2"}
    assert str(orders["o1"].order_amount) == "19.99"

    db_session.expire_all()
    assert db_session.get(TikTokShop, shop.id).orders_last_synced_at is not None


async def test_repeated_page_token_stops_pagination(db_session, shop_client, vendor, envelope, shop_factory):
    shop = shop_factory()
    vendor.add("POST", ORDERS_PATH, envelope({"orders": [{"id": "o1"}], "next_page_token": "same"}))

    stats = await ShopSyncService(db_session, shop_client, page_delay=0).sync_orders(shop)

    assert stats["pages"] == 2
    assert db_session.query(ShopOrder).count() == 1


async def test_performance_is_stored_once_per_day(db_session, shop_client, vendor, envelope, shop_factory):
    shop = shop_factory()
    vendor.add(
        "GET",
        "/analytics/202405/shop/performance",
        envelope({"performance": {"intervals": [{"orders": 4, "gmv": {"amount": "120.50"}, "units_sold": 6}]}}),
    )
    service = ShopSyncService(db_session, shop_client, page_delay=0)

    await service.sync_performance(shop, date(2024, 5, 1))
    await service.sync_performance(shop, date(2024, 5, 1))

    row = db_session.query(ShopPerformance).one()
    assert row.orders_count == 4
    assert row.items_sold == 6
    assert str(row.gross_revenue) == "120.50"


async def test_failing_kind_does_not_stop_other_kinds(db_session, shop_client, vendor, envelope, shop_factory):
    shop = shop_factory()
    vendor.add("POST", ORDERS_PATH, envelope(None, code=36009003, message="Internal error"))
    vendor.add("POST", "/product/202309/products/search", envelope({"products": [{"id": "p1", "title": "Mug"}]}))
    vendor.add("GET", "/finance/202309/statements", envelope({"statements": []}))
    vendor.add("GET", "/analytics/202405/shop/performance", envelope({"performance": {}}))

    results = await ShopSyncService(db_session, shop_client, page_delay=0).sync_shop(shop)

    assert results["orders"]["status"] == "failed"
    assert "Internal error" in results["orders"]["error"]
    assert results["products"]["status"] == "success"
    assert results["settlements"]["status"] == "success"
    assert results["performance"]["status"] == "success"


async def test_unknown_sync_type_is_rejected(db_session, shop_client, shop_factory):
    with pytest.raises(ValueError):
        await ShopSyncService(db_session, shop_client).sync_shop(shop_factory(), "reviews")


async def test_sync_all_shops_continues_after_a_shop_fails(db_session, shop_client, vendor, envelope, shop_factory):
    shop_factory(account_id="acc-1", shop_id="expired", expires_in=timedelta(minutes=-5), refresh_token="dead")
    shop_factory(account_id="acc-2", shop_id="healthy")
    vendor.add("GET", "/api/v2/token/refresh", envelope(None, code=105003, message="Refresh token expired"))
    vendor.add("POST", ORDERS_PATH, envelope({"orders": [{"id": "o1"}]}))

    results = await ShopSyncService(db_session, shop_client, page_delay=0).sync_all_shops("orders")

    assert results["acc-1:expired"]["status"] == "failed"
    assert "Refresh token expired" in results["acc-1:expired"]["error"]
    assert results["acc-2:healthy"]["status"] == "success"
    assert results["acc-2:healthy"]["results"]["orders"]["synced"] == 1


async def test_shop_token_is_rechecked_before_each_page(db_session, shop_client, vendor, envelope, shop_factory):
    shop = shop_factory(expires_in=timedelta(minutes=6))

    def first_page(request):
        # the clock moves past the buffer while the first page is processed
        shop.token_expires_at = utcnow() + timedelta(minutes=1)
        db_session.commit()
        return envelope({"orders": [{"id": "o1"}], "next_page_token": "page-2"})

    vendor.add("POST", ORDERS_PATH, first_page, envelope({"orders": [{"id": "o2"}], "next_page_token": ""}))
    vendor.add(
        "GET",
        "/api/v2/token/refresh",
        envelope({
            "access_token": "shop-access-new",
            "access_token_expire_in": 7 * 86400,
            "refresh_token": "shop-refresh-new",
            "refresh_token_expire_in": 30 * 86400,
        }),
    )

    results = await ShopSyncService(db_session, shop_client, page_delay=0).sync_shop(shop, "orders")

    assert results["orders"]["synced"] == 2
    pages = vendor.calls(ORDERS_PATH)
    assert pages[0].headers["x-tts-access-token"] == "shop-access"
    assert pages[1].headers["x-tts-access-token"] == "shop-access-new"
    assert len(vendor.calls("/api/v2/token/refresh")) == 1
