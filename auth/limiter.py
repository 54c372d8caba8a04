"""
auth/limiter.py -- Shared slowapi rate limiter instance.

Lives in auth/ because both layers need it: api/main.py mounts it as
middleware and attaches it to app.state; web/routes.py applies
@limiter.limit(LOGIN_RATE_LIMIT) to POST /login and POST /register.

Using a single shared instance ensures all routes share the same in-memory
counter store.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Brute-force mitigation for password guessing and account spraying.
LOGIN_RATE_LIMIT = get_settings().login_rate_limit
