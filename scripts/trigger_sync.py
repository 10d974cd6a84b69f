"""
Manually trigger a TikTok Shop or TikTok account sync.

Usage:
    python scripts/trigger_sync.py shop --account <id> [--shop <shop_id>] [--type performance]
    python scripts/trigger_sync.py tiktok --account <id> [--type videos]
    python scripts/trigger_sync.py all-shops
"""
import sys
import os
import argparse
import asyncio
import json
import logging

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tiktok_dashboard.core import SessionLocal, get_tiktok_config, get_shop_config
from tiktok_dashboard.core.log_config import setup_logging
from tiktok_dashboard.integrations import TikTokClient, TikTokShopClient
from tiktok_dashboard.services import ShopSyncService, TikTokSyncService
from tiktok_dashboard.services.shop_sync_service import SYNC_TYPES

logger = logging.getLogger("trigger_sync")

SYNC_TYPES_BY_TARGET = {
    "shop": ("all",) + SYNC_TYPES,
    "all-shops": ("all",) + SYNC_TYPES,
    "tiktok": ("all", "user", "videos"),
}


async def run(args) -> dict:
    db = SessionLocal()
    try:
        if args.target == "shop":
            service = ShopSyncService(db, TikTokShopClient(get_shop_config()))
            return await service.sync_account(args.account, args.type, args.shop)

        if args.target == "all-shops":
            service = ShopSyncService(db, TikTokShopClient(get_shop_config()))
            return await service.sync_all_shops(args.type)

        service = TikTokSyncService(db, TikTokClient(get_tiktok_config()))
        if args.type == "user":
            return {"user": await service.sync_user_data(args.account)}
        if args.type == "videos":
            return {"videos": await service.sync_videos(args.account)}
        return await service.sync_all_data(args.account)
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Trigger a TikTok data sync")
    parser.add_argument("target", choices=["shop", "all-shops", "tiktok"])
    parser.add_argument("--account", help="Dashboard account id")
    parser.add_argument("--shop", help="Shop id (defaults to every shop of the account)")
    parser.add_argument("--type", default="all", help="all | orders | products | settlements | performance | user | videos")
    args = parser.parse_args(argv)

    if args.target != "all-shops" and not args.account:
        parser.error("--account is required")
    if args.type not in SYNC_TYPES_BY_TARGET[args.target]:
        parser.error(
            f"--type {args.type} is not valid for {args.target} "
            f"(choose from {', '.join(SYNC_TYPES_BY_TARGET[args.target])})"
        )

    setup_logging()
    results = asyncio.run(run(args))
    print(json.dumps(results, indent=2, default=str))


if __name__ == "__main__":
    main()
