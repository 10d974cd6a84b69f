from __future__ import annotations

import os
import pathlib
from collections.abc import Generator
from datetime import timedelta
from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest
from fastapi.testclient import TestClient


ROOT = pathlib.Path(__file__).resolve().parents[1]
TEST_DB_PATH = ROOT / "test_tiktok_dashboard.db"

# Must be in place before tiktok_dashboard.core.config is imported
os.environ["DB_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["FRONTEND_URL"] = "http://frontend.test/dashboard"
os.environ["LOGS_PATH"] = ""
os.environ["TIKTOK_CLIENT_KEY"] = "client-key"
os.environ["TIKTOK_CLIENT_SECRET"] = "client-secret"
os.environ["TIKTOK_REDIRECT_URI"] = "http://api.test/api/tiktok/auth/callback"
os.environ["TIKTOK_SHOP_APP_KEY"] = "shop-key"
os.environ["TIKTOK_SHOP_APP_SECRET"] = "shop-secret"
os.environ["SYNC_PAGE_DELAY_SECONDS"] = "0"
os.environ["CRON_SECRET"] = "cron-secret"


StubResponse = Union[Dict[str, Any], httpx.Response, Callable[[httpx.Request], Any]]


class VendorStub:
    """
    Records every outgoing request and answers from per-(method, path) queues.
    The last queued response for a route repeats.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[StubResponse]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *responses: StubResponse) -> None:
        self.routes.setdefault((method.upper(), path), []).extend(responses)

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"code": 40400, "message": f"no stub for {request.url.path}"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            response = response(request)
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def shop_envelope(data: Any, code: int = 0, message: str = "Success") -> Dict[str, Any]:
    return {"code": code, "message": message, "data": data, "request_id": "req-1"}


@pytest.fixture
def envelope():
    return shop_envelope


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_database() -> Generator[None, None, None]:
    from tiktok_dashboard.core.database import Base, engine
    import tiktok_dashboard.models  # noqa: F401 - ensure models registered

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    yield

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session() -> Generator:
    from tiktok_dashboard.core.database import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def vendor() -> VendorStub:
    return VendorStub()


@pytest.fixture
def tiktok_client(vendor):
    from tiktok_dashboard.core.config import get_tiktok_config
    from tiktok_dashboard.integrations import TikTokClient

    return TikTokClient(get_tiktok_config(), transport=vendor.transport)


@pytest.fixture
def shop_client(vendor):
    from tiktok_dashboard.core.config import get_shop_config
    from tiktok_dashboard.integrations import TikTokShopClient

    return TikTokShopClient(get_shop_config(), transport=vendor.transport)


@pytest.fixture
def state_store():
    from tiktok_dashboard.services.oauth_state import OAuthStateStore

    return OAuthStateStore(ttl_seconds=600)


@pytest.fixture
def app_client(tiktok_client, shop_client, state_store) -> Generator[TestClient, None, None]:
    from main import app
    from tiktok_dashboard.api.deps import get_tiktok_client, get_shop_client, get_oauth_state_store

    app.dependency_overrides[get_tiktok_client] = lambda: tiktok_client
    app.dependency_overrides[get_shop_client] = lambda: shop_client
    app.dependency_overrides[get_oauth_state_store] = lambda: state_store

    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def shop_factory(db_session):
    from tiktok_dashboard.integrations.base import utcnow
    from tiktok_dashboard.models import TikTokShop

    def _create(
        account_id: str = "acc-1",
        shop_id: str = "shop-1",
        expires_in: timedelta = timedelta(hours=4),
        refresh_token: str = "shop-refresh",
        **overrides: Any,
    ) -> TikTokShop:
        shop = TikTokShop(
            account_id=account_id,
            shop_id=shop_id,
            shop_cipher=overrides.pop("shop_cipher", f"cipher-{shop_id}"),
            shop_name=overrides.pop("shop_name", f"Shop {shop_id}"),
            region="US",
            access_token=overrides.pop("access_token", "shop-access"),
            refresh_token=refresh_token,
            token_expires_at=utcnow() + expires_in,
            **overrides,
        )
        db_session.add(shop)
        db_session.commit()
        db_session.refresh(shop)
        return shop

    return _create
