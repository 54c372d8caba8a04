"""
web/routes.py -- Jinja2 template routes for the wwwbase web UI.

Every route except /logout depends on get_identity(), i.e. goes through the
auth gate: the session token is resolved and rotated, and anonymous requests
to /settings, /unregister, /add and /editdel are redirected to /login before
the handler body runs.

Mutating routes (POST) always answer with a 302 and leave their outcome in an
"error" or "info" flash; GET routes render and drain those flashes.

Routes:
  GET  /            -- profile + visible records
  GET  /register    -- registration form (anonymous only)
  POST /register    -- create account, log in, redirect /
  GET  /login       -- login form (anonymous only)
  POST /login       -- authenticate by nick or email, redirect /
  GET  /logout      -- revoke token, redirect / (POST accepted too)
  GET  /settings    -- account form (auth required)
  POST /settings    -- update account, redirect /
  POST /unregister  -- delete account and its records, log out
  POST /add         -- create a record
  POST /editdel     -- edit or delete a record (action=edit|delete)
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.credentials import authenticate, register, update_account
from auth.dependencies import get_gate, get_identity, require_identity
from auth.flash import ERROR, INFO, drain_flashes, pop_flash, set_flash
from auth.limiter import LOGIN_RATE_LIMIT, limiter
from auth.models import ADMIN_ID, User, UserType
from auth.store import UserStore
from core.config import get_settings
from core.errors import InvalidCredentials, NotOwner, WwwBaseError
from records.access import AccessPolicy
from records.models import Record

logger = logging.getLogger("wwwbase.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

_TRUE_VALUES = {"on", "true", "1", "yes"}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _redirect(location: str) -> RedirectResponse:
    return RedirectResponse(location, status_code=302)


def _fail(request: Request, exc: WwwBaseError, location: str) -> RedirectResponse:
    """Report a recoverable error through the flash queue and go back to location."""
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    set_flash(request.session, ERROR, exc.message)
    return _redirect(location)


def _render(request: Request, name: str, user: Optional[User], **context) -> HTMLResponse:
    """Render a page, surfacing the flashes left by the previous redirect."""
    flashes = drain_flashes(request.session)
    return templates.TemplateResponse(
        request,
        name,
        {
            "title": get_settings().site_title,
            "connected": user is not None,
            "user": user,
            "error": flashes[ERROR],
            "info": flashes[INFO],
            "account_types": [UserType.INDIVIDUAL, UserType.ORGANIZATION],
            **context,
        },
    )


def _checkbox(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _parse_type(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise InvalidCredentials("Invalid account type") from None


# ---------------------------------------------------------------------------
# GET / -- index
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def index(request: Request, user: Optional[User] = Depends(get_identity)) -> HTMLResponse:
    policy: AccessPolicy = request.app.state.records
    records = policy.list_visible(user)
    owned = {r.id for r in records if user is not None and policy.owns(user.id, r.id)}
    return _render(request, "index.html", user, records=records, owned=owned)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.get("/register", response_class=HTMLResponse)
def register_form(request: Request, user: Optional[User] = Depends(get_identity)) -> HTMLResponse:
    if user is not None:
        return _redirect("/")
    return _render(request, "register.html", user)


@router.post("/register", response_class=HTMLResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
def register_post(
    request: Request,
    user: Optional[User] = Depends(get_identity),
    nick: str = Form(default=""),
    passwd: str = Form(default=""),
    email: str = Form(default=""),
    account_type: str = Form(default="0", alias="type"),
    website: str = Form(default=""),
    fullname: str = Form(default=""),
) -> RedirectResponse:
    """Create an account and log it in. Administrator is never accepted as type."""
    if user is not None:
        return _redirect("/")
    user_store: UserStore = request.app.state.user_store
    try:
        candidate = User(
            nick=nick.strip(),
            passwd=passwd,
            email=email.strip(),
            type=_parse_type(account_type),
            website=website.strip(),
            fullname=fullname.strip(),
        )
        created = register(user_store, candidate)
    except WwwBaseError as exc:
        return _fail(request, exc, "/register")
    get_gate(request).login(request.session, created)
    return _redirect("/")


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request, user: Optional[User] = Depends(get_identity)) -> HTMLResponse:
    if user is not None:
        return _redirect("/")
    return _render(request, "login.html", user)


@router.post("/login", response_class=HTMLResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
def login_post(
    request: Request,
    user: Optional[User] = Depends(get_identity),
    nick: str = Form(default=""),
    passwd: str = Form(default=""),
) -> RedirectResponse:
    """Authenticate with nick or email. No token is issued on failure."""
    if user is not None:
        return _redirect("/")
    user_store: UserStore = request.app.state.user_store
    try:
        authenticated = authenticate(user_store, nick.strip(), passwd)
    except WwwBaseError as exc:
        return _fail(request, exc, "/login")
    get_gate(request).login(request.session, authenticated)
    return _redirect("/")


@router.get("/logout")
@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Unregister the session's token and drop any stale error message.

    Not gated: there is nothing to rotate for a token about to be revoked.
    """
    get_gate(request).logout(request.session)
    pop_flash(request.session, ERROR)
    return _redirect("/")


# ---------------------------------------------------------------------------
# Account settings
# ---------------------------------------------------------------------------


@router.get("/settings", response_class=HTMLResponse)
def settings_form(request: Request, user: User = Depends(require_identity)) -> HTMLResponse:
    return _render(request, "settings.html", user)


@router.post("/settings", response_class=HTMLResponse)
def settings_post(
    request: Request,
    user: User = Depends(require_identity),
    passwd: str = Form(default=""),
    email: str = Form(default=""),
    website: str = Form(default=""),
    fullname: str = Form(default=""),
) -> RedirectResponse:
    """Update the account; an empty password keeps the current one.

    The id and nick come from the resolved identity, never from the form.
    """
    user_store: UserStore = request.app.state.user_store
    try:
        updated = update_account(
            user_store,
            user,
            email=email,
            website=website,
            fullname=fullname,
            new_password=passwd,
        )
    except WwwBaseError as exc:
        return _fail(request, exc, "/settings")
    # Re-bind the session to the updated account.
    gate = get_gate(request)
    gate.logout(request.session)
    gate.login(request.session, updated)
    set_flash(request.session, INFO, "settings updated")
    return _redirect("/")


@router.post("/unregister")
def unregister(request: Request, user: User = Depends(require_identity)) -> RedirectResponse:
    """Delete the account (its records cascade), then log out."""
    if user.id == ADMIN_ID:
        set_flash(request.session, ERROR, "The administrator account cannot be deleted")
        return _redirect("/settings")
    user_store: UserStore = request.app.state.user_store
    policy: AccessPolicy = request.app.state.records
    user_store.delete_user(user.id)
    policy.forget_owner(user.id)
    request.app.state.tokens.revoke_user(user.id)
    logger.info("User id=%d unregistered", user.id)
    set_flash(request.session, INFO, "account deleted")
    return logout(request)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@router.post("/add")
def add(
    request: Request,
    user: User = Depends(require_identity),
    name: str = Form(default=""),
    content: str = Form(default=""),
    public: str = Form(default=""),
) -> RedirectResponse:
    """Create a record owned by the current user."""
    policy: AccessPolicy = request.app.state.records
    try:
        policy.create(user, Record(name=name.strip(), content=content, public=_checkbox(public)))
    except WwwBaseError as exc:
        return _fail(request, exc, "/")
    set_flash(request.session, INFO, "new element added")
    return _redirect("/")


@router.post("/editdel")
def editdel(
    request: Request,
    user: User = Depends(require_identity),
    action: str = Form(default=""),
    record_id: str = Form(default="", alias="id"),
    name: str = Form(default=""),
    content: str = Form(default=""),
    public: str = Form(default=""),
) -> RedirectResponse:
    """Edit or delete one of the user's records.

    Only the record id is taken from the form; ownership is checked against
    the ownership index, so posting someone else's id (or a uid field) gets
    the same generic denial as posting an id that does not exist.
    """
    policy: AccessPolicy = request.app.state.records
    try:
        rid = int(record_id)
    except ValueError:
        return _fail(request, NotOwner(), "/")
    try:
        if action == "edit":
            policy.edit(user, Record(id=rid, name=name.strip(), content=content, public=_checkbox(public)))
            message = "element edited"
        elif action == "delete":
            policy.delete(user, rid)
            message = "element deleted"
        else:
            return _fail(request, InvalidCredentials(f"Unknown action {action[:20]!r}"), "/")
    except WwwBaseError as exc:
        return _fail(request, exc, "/")
    set_flash(request.session, INFO, message)
    return _redirect("/")
