"""
api/limiter.py -- The one slowapi Limiter for the process.

api/main.py registers it on app.state for SlowAPIMiddleware; the login route
decorates itself with limiter.limit(LOGIN_RATE_LIMIT). Counters are keyed by
client IP and live in process memory, so they reset on restart.

RATE_LIMIT_ENABLED=false turns every limit into a no-op (used by the tests).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)
