# Jobs Package - Scheduled background tasks
from .oauth_sweep import OAuthSweepScheduler, start_scheduler, stop_scheduler

__all__ = ["OAuthSweepScheduler", "start_scheduler", "stop_scheduler"]
