# app/core/limiter.py
"""
Rate limiter shared by the application and the endpoint modules.
Kept in its own module so routers can import it without importing main.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
