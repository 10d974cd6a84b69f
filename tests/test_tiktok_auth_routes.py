import json
from urllib.parse import parse_qs, urlparse

import pytest

from tiktok_dashboard.models import Account, TikTokAuthToken, TikTokUserInfo, TikTokVideo


TOKEN_RESPONSE = {
    "access_token": "act.1",
    "refresh_token": "rft.1",
    "expires_in": 86400,
    "token_type": "Bearer",
    "scope": "user.info.basic,video.list",
    "open_id": "open-1",
}


@pytest.fixture
def tiktok_vendor(vendor):
    vendor.add("POST", "/v2/oauth/token/", TOKEN_RESPONSE)
    vendor.add(
        "GET",
        "/v2/user/info/",
        {
            "data": {"user": {"open_id": "open-1", "display_name": "Jane Doe", "follower_count": 42}},
            "error": {"code": "ok"},
        },
    )
    vendor.add(
        "POST",
        "/v2/video/list/",
        {
            "data": {"videos": [{"id": "v1", "view_count": 10, "like_count": 1}], "cursor": 0, "has_more": False},
            "error": {"code": "ok"},
        },
    )
    return vendor


def _redirect_query(response):
    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("http://frontend.test/dashboard?")
    return {k: v[0] for k, v in parse_qs(urlparse(location).query).items()}


def _start(app_client, account_id="acc-1"):
    response = app_client.post("/api/tiktok/auth/start", json={"accountId": account_id})
    assert response.status_code == 200
    return response.json()


def test_start_returns_auth_url_and_stores_session(app_client, state_store):
    body = _start(app_client)

    assert body["success"] is True
    assert body["csrfToken"] in state_store
    query = parse_qs(urlparse(body["authUrl"]).query)
    assert json.loads(query["state"][0]) == {"csrf": body["csrfToken"], "accountId": "acc-1"}


def test_callback_stores_token_and_runs_initial_sync(app_client, tiktok_vendor, db_session):
    csrf = _start(app_client)["csrfToken"]
    state = json.dumps({"csrf": csrf, "accountId": "acc-1"})

    response = app_client.get(
        "/api/tiktok/auth/callback",
        params={"code": "auth-code", "state": state},
        follow_redirects=False,
    )

    assert _redirect_query(response) == {"tiktok_connected": "true", "account_id": "acc-1"}
    token = db_session.query(TikTokAuthToken).filter_by(account_id="acc-1").one()
    assert token.access_token == "act.1"
    assert db_session.query(TikTokUserInfo).filter_by(account_id="acc-1").one().follower_count == 42
    assert db_session.query(TikTokVideo).count() == 1


def test_replayed_csrf_token_is_rejected(app_client, tiktok_vendor):
    csrf = _start(app_client)["csrfToken"]
    params = {"code": "auth-code", "state": json.dumps({"csrf": csrf, "accountId": "acc-1"})}

    first = app_client.get("/api/tiktok/auth/callback", params=params, follow_redirects=False)
    second = app_client.get("/api/tiktok/auth/callback", params=params, follow_redirects=False)

    assert _redirect_query(first)["tiktok_connected"] == "true"
    assert _redirect_query(second) == {"tiktok_error": "Invalid or expired CSRF token"}
    assert len(tiktok_vendor.calls("/v2/oauth/token/")) == 1


def test_vendor_error_redirects_with_description(app_client, vendor):
    response = app_client.get(
        "/api/tiktok/auth/callback",
        params={"error": "access_denied", "error_description": "User cancelled"},
        follow_redirects=False,
    )

    assert _redirect_query(response) == {"tiktok_error": "User cancelled"}
    assert vendor.requests == []


def test_malformed_state_redirects_with_error(app_client, vendor):
    response = app_client.get(
        "/api/tiktok/auth/callback",
        params={"code": "auth-code", "state": "not-json"},
        follow_redirects=False,
    )

    assert _redirect_query(response) == {"tiktok_error": "Invalid state parameter"}


def test_failed_initial_sync_does_not_fail_the_connection(app_client, vendor, db_session):
    vendor.add("POST", "/v2/oauth/token/", TOKEN_RESPONSE)
    vendor.add("GET", "/v2/user/info/", {"data": {}, "error": {"code": "scope_not_authorized", "message": "nope"}})
    csrf = _start(app_client)["csrfToken"]

    response = app_client.get(
        "/api/tiktok/auth/callback",
        params={"code": "auth-code", "state": json.dumps({"csrf": csrf, "accountId": "acc-1"})},
        follow_redirects=False,
    )

    assert _redirect_query(response)["tiktok_connected"] == "true"
    assert db_session.query(TikTokAuthToken).count() == 1


def test_status_and_disconnect(app_client, tiktok_vendor):
    csrf = _start(app_client)["csrfToken"]
    app_client.get(
        "/api/tiktok/auth/callback",
        params={"code": "auth-code", "state": json.dumps({"csrf": csrf, "accountId": "acc-1"})},
        follow_redirects=False,
    )

    status = app_client.get("/api/tiktok/auth/status/acc-1").json()
    assert status["data"]["connected"] is True
    assert status["data"]["needsRefresh"] is False

    assert app_client.delete("/api/tiktok/auth/disconnect/acc-1").json()["success"] is True
    assert app_client.get("/api/tiktok/auth/status/acc-1").json()["data"] == {"connected": False}


def test_refresh_unknown_account_returns_404(app_client):
    response = app_client.post("/api/tiktok/auth/refresh/nobody")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "TikTok account not connected"}


def test_unknown_route_uses_error_envelope(app_client):
    response = app_client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Endpoint not found"}


def test_failed_exchange_for_new_account_creates_no_account(app_client, vendor, state_store, db_session):
    vendor.add("POST", "/v2/oauth/token/", {"error": "invalid_grant", "error_description": "Code expired"})
    csrf = state_store.create("verifier-1")

    response = app_client.get(
        "/api/tiktok/auth/callback",
        params={"code": "auth-code", "state": json.dumps({"csrf": csrf, "accountId": None})},
        follow_redirects=False,
    )

    assert "Code expired" in _redirect_query(response)["tiktok_error"]
    assert db_session.query(Account).count() == 0


def test_successful_exchange_for_new_account_creates_one(app_client, tiktok_vendor, state_store, db_session):
    csrf = state_store.create("verifier-1")

    response = app_client.get(
        "/api/tiktok/auth/callback",
        params={"code": "auth-code", "state": json.dumps({"csrf": csrf, "accountId": None})},
        follow_redirects=False,
    )

    account = db_session.query(Account).one()
    assert _redirect_query(response) == {"tiktok_connected": "true", "account_id": account.id}
    assert db_session.query(TikTokAuthToken).one().account_id == account.id
