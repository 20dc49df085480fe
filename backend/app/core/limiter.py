"""Rate limiter singleton — import from here to avoid circular deps.

Outside development the counters live in Redis so every gunicorn worker
shares one budget per client address.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.REDIS_URL if settings.APP_ENV == "production" else "memory://",
)
