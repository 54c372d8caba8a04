"""
auth/tokens.py -- Process-lifetime registry of one-time session tokens.

Security design decisions:
  Tokens: 63-bit non-negative integers from secrets.randbits(). The token is
       stored in the signed session cookie and mapped here to the live User.
       It is a per-request capability, not a durable session id: the auth
       gate revokes it and issues a fresh one on every authenticated request.

  Collisions: negligible at 63 bits but handled -- issue() redraws while the
       value is already live (or zero, which is never handed out), with a
       bounded number of attempts instead of looping forever.

  Locking: one threading.Lock guards the map. It is held for a single map
       operation only, never across I/O. FastAPI runs sync route handlers in
       a thread pool, so concurrent requests really do race here.

  Persistence: none. A restart invalidates every outstanding token and every
       session must log in again.

Layer rule: no imports from api/, web/ or records/.
"""

from __future__ import annotations

import logging
import secrets
import threading

from auth.models import User

logger = logging.getLogger("wwwbase.auth")

TOKEN_BITS = 63
_MAX_DRAWS = 32


class TokenRegistry:
    """Concurrent mapping token -> authenticated User.

    One instance is created by the application lifespan and stored on
    app.state.tokens; request handlers receive it from there.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens: dict[int, User] = {}

    def issue(self, user: User) -> int:
        """Mint a new token bound to user and return it."""
        with self._lock:
            for _ in range(_MAX_DRAWS):
                token = secrets.randbits(TOKEN_BITS)
                if token and token not in self._tokens:
                    self._tokens[token] = user
                    return token
        raise RuntimeError(f"Could not draw a free token after {_MAX_DRAWS} attempts")

    def resolve(self, token: object) -> User | None:
        """Return the user bound to token, or None.

        Anything that is not an int (missing, tampered or legacy session
        data) resolves to None rather than raising.
        """
        if not isinstance(token, int) or isinstance(token, bool):
            return None
        with self._lock:
            return self._tokens.get(token)

    def revoke(self, token: object) -> None:
        """Forget token. Revoking an unknown token is a no-op."""
        if not isinstance(token, int) or isinstance(token, bool):
            return
        with self._lock:
            self._tokens.pop(token, None)

    def revoke_user(self, user_id: int) -> int:
        """Forget every token bound to user_id. Returns how many were dropped."""
        with self._lock:
            stale = [t for t, u in self._tokens.items() if u.id == user_id]
            for token in stale:
                del self._tokens[token]
        if stale:
            logger.debug("Revoked %d token(s) for user id=%d", len(stale), user_id)
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __contains__(self, token: object) -> bool:
        return self.resolve(token) is not None
