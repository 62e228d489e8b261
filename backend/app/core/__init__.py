from .cache import cache
from .config import settings
from .database import AsyncSessionLocal, get_db, transactional
from .logging import logger, setup_logging

__all__ = [
    "AsyncSessionLocal",
    "cache",
    "get_db",
    "logger",
    "settings",
    "setup_logging",
    "transactional",
]
