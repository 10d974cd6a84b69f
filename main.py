"""
TikTok Dashboard - TikTok & TikTok Shop integration backend
FastAPI Application Entry Point
"""
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from tiktok_dashboard.core import settings, engine, Base, get_tiktok_config, get_shop_config
from tiktok_dashboard.core.errors import install_exception_handlers
from tiktok_dashboard.core.log_config import setup_logging, mask_secret
from tiktok_dashboard.api.router import api_router
from tiktok_dashboard.jobs import start_scheduler, stop_scheduler
import tiktok_dashboard.models  # noqa: F401 - register tables

logger = logging.getLogger(__name__)


def _check_credentials():
    tiktok = get_tiktok_config()
    shop = get_shop_config()
    if not tiktok.is_configured:
        logger.warning("TikTok client key/secret not configured; personal OAuth will fail")
    if not shop.is_configured:
        logger.warning("TikTok Shop app key/secret not configured; Shop calls will fail")
    logger.info(
        f"TikTok Shop: app_key={mask_secret(shop.app_key)} api_base={shop.api_base} auth_base={shop.auth_base}"
    )


# Lifespan for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} starting on port {settings.APP_PORT}")
    _check_credentials()

    try:
        start_scheduler()
    except Exception as e:
        logger.warning(f"Could not start OAuth sweep scheduler: {e}")

    yield

    stop_scheduler()
    logger.info(f"{settings.APP_NAME} shutting down")


app = FastAPI(
    title=settings.APP_NAME,
    description="TikTok account & TikTok Shop integration API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.info(f"{request.method} {request.url.path} -> {response.status_code}")
    return response


# Include routers
app.include_router(api_router, prefix="/api")


# Health check
@app.get("/health")
async def health_check():
    return {"status": "ok", "app": settings.APP_NAME}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG,
    )
