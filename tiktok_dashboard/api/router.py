"""
API Router - Combine all API routers
"""
from fastapi import APIRouter

from .tiktok_auth import tiktok_auth_router
from .tiktok_data import tiktok_data_router
from .shop_auth import shop_auth_router
from .shop_data import shop_data_router
from .shop_finance import shop_finance_router

api_router = APIRouter()

api_router.include_router(tiktok_auth_router)
api_router.include_router(tiktok_data_router)
api_router.include_router(shop_auth_router)
api_router.include_router(shop_data_router)
api_router.include_router(shop_finance_router)
