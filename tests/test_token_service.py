from datetime import timedelta
from urllib.parse import parse_qs

import pytest

from tiktok_dashboard.core.errors import NotConnectedError
from tiktok_dashboard.integrations.base import utcnow
from tiktok_dashboard.models import TikTokAuthToken, TikTokShop
from tiktok_dashboard.services import token_service


pytestmark = pytest.mark.anyio

TOKEN_PATH = "/v2/oauth/token/"
SHOP_REFRESH_PATH = "/api/v2/token/refresh"


def _store_token(db, minutes_left: float, account_id: str = "acc-1") -> TikTokAuthToken:
    row = TikTokAuthToken(
        account_id=account_id,
        access_token="old-access",
        refresh_token="old-refresh",
        expires_at=utcnow() + timedelta(minutes=minutes_left),
        scope="user.info.basic",
        open_id="open-1",
    )
    db.add(row)
    db.commit()
    return row


def test_needs_refresh_threshold():
    now = utcnow()
    assert token_service.needs_refresh(now + timedelta(minutes=10), now=now) is False
    assert token_service.needs_refresh(now + timedelta(minutes=5), now=now) is False
    assert token_service.needs_refresh(now + timedelta(minutes=4, seconds=59), now=now) is True
    assert token_service.needs_refresh(now - timedelta(minutes=1), now=now) is True
    assert token_service.needs_refresh(None, now=now) is True


async def test_token_with_ten_minutes_left_is_reused(db_session, tiktok_client, vendor):
    _store_token(db_session, minutes_left=10)

    access = await token_service.get_valid_access_token(db_session, tiktok_client, "acc-1")

    assert access == "old-access"
    assert vendor.requests == []


async def test_token_inside_buffer_is_refreshed_and_persisted(db_session, tiktok_client, vendor):
    _store_token(db_session, minutes_left=2)
    vendor.add(
        "POST",
        TOKEN_PATH,
        {
            "access_token": "new-access",
            "refresh_token": "new-refresh",
            "expires_in": 86400,
            "token_type": "Bearer",
            "scope": "user.info.basic,video.list",
            "open_id": "open-1",
        },
    )

    access = await token_service.get_valid_access_token(db_session, tiktok_client, "acc-1")

    assert access == "new-access"
    form = parse_qs(vendor.calls(TOKEN_PATH)[0].content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["refresh_token"] == ["old-refresh"]

    db_session.expire_all()
    row = db_session.query(TikTokAuthToken).filter_by(account_id="acc-1").one()
    assert row.access_token == "new-access"
    assert row.refresh_token == "new-refresh"
    assert row.expires_at - utcnow() > timedelta(hours=23)


async def test_refresh_failure_propagates(db_session, tiktok_client, vendor):
    _store_token(db_session, minutes_left=1)
    vendor.add("POST", TOKEN_PATH, {"error": "invalid_grant", "error_description": "Refresh token expired"})

    with pytest.raises(Exception, match="Refresh token expired"):
        await token_service.get_valid_access_token(db_session, tiktok_client, "acc-1")

    db_session.expire_all()
    assert db_session.query(TikTokAuthToken).one().access_token == "old-access"


async def test_missing_account_raises_not_connected(db_session, tiktok_client):
    with pytest.raises(NotConnectedError):
        await token_service.get_valid_access_token(db_session, tiktok_client, "nobody")


async def test_shop_refresh_updates_every_shop_sharing_the_authorization(
    db_session, shop_client, vendor, envelope, shop_factory
):
    first = shop_factory(shop_id="shop-1", expires_in=timedelta(minutes=3))
    shop_factory(shop_id="shop-2", expires_in=timedelta(minutes=3))
    shop_factory(account_id="acc-2", shop_id="shop-9", refresh_token="other-refresh")
    vendor.add(
        "GET",
        SHOP_REFRESH_PATH,
        envelope({
            "access_token": "shop-access-2",
            "access_token_expire_in": 7 * 86400,
            "refresh_token": "shop-refresh-2",
            "refresh_token_expire_in": 30 * 86400,
        }),
    )

    shop = await token_service.ensure_shop_token(db_session, shop_client, first)

    assert shop.access_token == "shop-access-2"
    db_session.expire_all()
    tokens = {s.shop_id: s.access_token for s in db_session.query(TikTokShop).all()}
    assert tokens == {"shop-1": "shop-access-2", "shop-2": "shop-access-2", "shop-9": "shop-access"}


async def test_fresh_shop_token_is_not_refreshed(db_session, shop_client, vendor, shop_factory):
    shop = shop_factory(expires_in=timedelta(hours=2))

    result = await token_service.get_shop_with_token(db_session, shop_client, "acc-1")

    assert result.id == shop.id
    assert vendor.requests == []
