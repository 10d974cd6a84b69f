"""
OAuth session sweeper - evicts expired CSRF/PKCE entries on a fixed interval
"""
from typing import Optional
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tiktok_dashboard.core.config import settings
from tiktok_dashboard.services.oauth_state import OAuthStateStore, oauth_state_store

logger = logging.getLogger(__name__)

_scheduler = None


class OAuthSweepScheduler:
    """
    Runs OAuthStateStore.sweep() every `interval_seconds`
    """

    JOB_ID = "oauth_state_sweep"

    def __init__(self, store: OAuthStateStore, interval_seconds: Optional[int] = None):
        self.store = store
        self.interval_seconds = interval_seconds or settings.OAUTH_STATE_SWEEP_SECONDS
        self.scheduler = AsyncIOScheduler()
        self.is_running = False

    def start(self):
        if self.is_running:
            return
        self.scheduler.add_job(
            func=self.run_sweep,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            name="Sweep expired OAuth sessions",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.start()
        self.is_running = True
        logger.info(f"OAuth sweep scheduled every {self.interval_seconds}s")

    def stop(self):
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("OAuth sweep scheduler stopped")

    def run_sweep(self) -> int:
        try:
            return self.store.sweep()
        except Exception as e:
            logger.error(f"OAuth sweep failed: {e}")
            return 0


# ========== Global Functions ==========

def get_scheduler() -> OAuthSweepScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = OAuthSweepScheduler(oauth_state_store)
    return _scheduler


def start_scheduler():
    get_scheduler().start()


def stop_scheduler():
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
