"""
api/limiter.py -- The one slowapi Limiter shared by the app and its routes.

api/main.py mounts it (SlowAPIMiddleware + app.state.limiter); the auth
routes decorate POST /auth/login with it. Counters live in process memory,
keyed by client IP, so every decorated route must use this same instance.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Current LOGIN_RATE_LIMIT, looked up when the limit is evaluated."""
    return get_settings().login_rate_limit
