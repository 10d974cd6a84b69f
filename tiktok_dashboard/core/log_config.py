"""
Logging setup - console plus size-rotated file under LOGS_PATH
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "apscheduler",
)

_configured = False


def setup_logging(logs_path: Optional[str] = None, level: Optional[str] = None) -> None:
    """Install console + rotating file handlers on the root logger (idempotent)"""
    global _configured
    if _configured:
        return

    logs_path = logs_path or settings.LOGS_PATH
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    handlers.append(console_handler)

    if logs_path:
        os.makedirs(logs_path, exist_ok=True)
        # 50MB per file, keep 7
        file_handler = RotatingFileHandler(
            os.path.join(logs_path, "server.log"),
            maxBytes=50 * 1024 * 1024,
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handlers.append(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.basicConfig(level=log_level, handlers=handlers)
    _configured = True


def mask_secret(value: Optional[str], visible: int = 5) -> str:
    """Render a credential for logs: first few chars, rest hidden"""
    if not value:
        return "MISSING"
    return f"{value[:visible]}..."
