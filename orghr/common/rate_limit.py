"""Rate limiting configuration using slowapi.

Provides a module-level Limiter instance that routers import for
per-endpoint limits, wired into the FastAPI app in main.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from orghr.config import settings

# Keyed by client IP. Routes opt in with @limiter.limit("N/period");
# default_limits only apply once SlowAPIMiddleware is installed.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)
