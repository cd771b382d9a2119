"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply the login limit with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

The per-IP login limit complements the per-account lockout in auth/login.py:
lockout stops guessing one account's password, the limit stops one client
spraying many accounts. The lifespan sets limiter.enabled from
Settings.rate_limit_enabled.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Resolve the login limit lazily so importing routes never requires SECRET_KEY."""
    return get_settings().login_rate_limit
