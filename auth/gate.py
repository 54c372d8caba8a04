"""
auth/gate.py -- Per-request authentication gate.

Every request passes through AuthGate.enter() before its handler runs:

  1. Read the token from the session. Missing or malformed -> anonymous.
  2. If the registry knows the token: authenticated. The old token is revoked
     and a fresh one bound to the same user is written back into the session
     (rotation). An unknown or already-rotated token is dropped from the
     session and the request continues anonymously.
  3. Anonymous request on a mandatory-auth path: an "error" flash is queued
     and the decision carries a redirect to the login page. The caller must
     not run the handler.
  4. Otherwise the decision carries the identity (possibly None) and the
     caller dispatches.

The gate knows nothing about HTTP frameworks: it works on the session
mapping and the request path. auth/dependencies.py binds it to FastAPI.

Two requests on the same session can both read the pre-rotation token; the
one that loses the race presents a revoked token on its next request and is
treated as anonymous. That is accepted, not a bug.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass
from typing import Any, TypeVar

from auth.flash import ERROR, set_flash
from auth.models import User
from auth.tokens import TokenRegistry

logger = logging.getLogger("wwwbase.auth")

TOKEN_KEY = "token"
LOGIN_PATH = "/login"
NOT_CONNECTED = "Not yet connected"

# Paths that short-circuit to the login page without an identity.
MANDATORY_AUTH_ROUTES = frozenset({"/settings", "/unregister", "/add", "/editdel"})

T = TypeVar("T")


@dataclass(frozen=True)
class GateDecision:
    """Outcome of the gate for one request.

    redirect is None when the request may proceed; otherwise it is the
    location the caller must redirect to without invoking the handler.
    """

    user: User | None
    redirect: str | None = None

    @property
    def proceed(self) -> bool:
        return self.redirect is None


class AuthGate:
    def __init__(
        self,
        registry: TokenRegistry,
        mandatory: frozenset[str] = MANDATORY_AUTH_ROUTES,
        login_path: str = LOGIN_PATH,
    ) -> None:
        self.registry = registry
        self.mandatory = mandatory
        self.login_path = login_path

    def resolve(self, session: MutableMapping[str, Any]) -> User | None:
        """Steps 1-2: resolve identity and rotate the token."""
        token = session.get(TOKEN_KEY)
        if token is None:
            return None
        user = self.registry.resolve(token)
        if user is None:
            # Revoked, rotated away or never valid (restart, tampering).
            session.pop(TOKEN_KEY, None)
            return None
        self.registry.revoke(token)
        self.login(session, user)
        return user

    def enter(self, session: MutableMapping[str, Any], path: str) -> GateDecision:
        """Steps 1-3 for a request to path."""
        user = self.resolve(session)
        if user is None and path in self.mandatory:
            logger.info("Anonymous request to %s redirected to %s", path, self.login_path)
            set_flash(session, ERROR, NOT_CONNECTED)
            return GateDecision(user=None, redirect=self.login_path)
        return GateDecision(user=user)

    def dispatch(
        self,
        session: MutableMapping[str, Any],
        path: str,
        handler: Callable[[User | None], T],
    ) -> T | GateDecision:
        """Run the gate and, if it allows it, the handler with the identity.

        Returns the handler's result, or the redirecting GateDecision when the
        handler was not invoked.
        """
        decision = self.enter(session, path)
        if not decision.proceed:
            return decision
        return handler(decision.user)

    def login(self, session: MutableMapping[str, Any], user: User) -> int:
        """Bind a fresh token to user and store it in the session."""
        token = self.registry.issue(user)
        session[TOKEN_KEY] = token
        return token

    def logout(self, session: MutableMapping[str, Any]) -> None:
        """Unregister the session's token and remove it from the session."""
        self.registry.revoke(session.pop(TOKEN_KEY, None))
