"""
auth/dependencies.py -- FastAPI Depends() helpers around the auth gate.

get_identity() is the one entry point: it runs AuthGate.enter() for the
current request exactly once (the decision is cached on request.state, so a
route that depends on it twice does not rotate the token twice) and returns
the resolved User or None.

When the gate refuses the request (anonymous on a mandatory-auth path) it
raises AuthRedirect. The exception handler registered in api/main.py turns it
into a 302 to the login page; the route handler body never runs.

Layer rule: no imports from web/ or records/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.flash import ERROR, set_flash
from auth.gate import NOT_CONNECTED, AuthGate, GateDecision
from auth.models import User


class AuthRedirect(Exception):
    """Raised by get_identity() when the request must go to the login page."""

    def __init__(self, location: str) -> None:
        self.location = location
        super().__init__(location)


def get_gate(request: Request) -> AuthGate:
    return request.app.state.gate


def get_identity(request: Request) -> User | None:
    """Resolve (and rotate) the request's identity. Raises AuthRedirect when refused.

    Use as a FastAPI dependency:
        @router.get("/settings")
        def route(request: Request, user: User | None = Depends(get_identity)): ...
    """
    decision: GateDecision | None = getattr(request.state, "gate_decision", None)
    if decision is None:
        decision = get_gate(request).enter(request.session, request.url.path)
        request.state.gate_decision = decision
    if not decision.proceed:
        raise AuthRedirect(decision.redirect)
    return decision.user


def require_identity(request: Request) -> User:
    """Like get_identity() but for handlers that must have a user.

    Paths in MANDATORY_AUTH_ROUTES never reach the handler anonymously; this
    covers any other path that needs an identity by applying the same
    redirect.
    """
    user = get_identity(request)
    if user is None:
        set_flash(request.session, ERROR, NOT_CONNECTED)
        raise AuthRedirect(get_gate(request).login_path)
    return user
