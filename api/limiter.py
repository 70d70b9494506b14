"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
(to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Limits are callables reading Settings, so LOGIN_RATE_LIMIT and friends can be
changed per deployment without touching the route decorators.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_limit() -> str:
    return get_settings().login_rate_limit


def register_limit() -> str:
    return get_settings().register_rate_limit


def verify_limit() -> str:
    return get_settings().verify_rate_limit


def resend_limit() -> str:
    return get_settings().resend_rate_limit
