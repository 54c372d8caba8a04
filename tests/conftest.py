"""
tests/conftest.py -- Shared test fixtures for wwwbase unit and integration tests.

This module provides:
  - _make_test_stores(): isolated in-memory DB with the admin bootstrapped
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - user_store / policy: stores for unit tests that do not need HTTP
  - api_client: TestClient for the JSON endpoints
  - web_client: TestClient with follow_redirects=False for web route tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any application import:
  DEBUG=true              get_settings() auto-generates SECRET_KEY
  ALLOWED_HOSTS=["*"]     TestClient sends Host: testserver
  LOGIN_RATE_LIMIT        high enough that repeated logins are never throttled
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import, get_settings() is cached.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.credentials import hash_password
from auth.gate import AuthGate
from auth.store import UserStore
from auth.tokens import TokenRegistry
from records.access import AccessPolicy
from records.store import RecordStore

ADMIN_PASSWORD = "adminpass123"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, AccessPolicy]:
    """Create an isolated named shared-memory database with the admin account.

    Args:
        db_suffix: Unique string appended to the DB name so tests don't
                   share state.
    """
    db_url = f"sqlite:///file:test_wwwbase_{db_suffix}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url=db_url)
    user_store.ensure_admin(hash_password(ADMIN_PASSWORD))
    policy = AccessPolicy.load(RecordStore(user_store.engine))
    return user_store, policy


def _patch_lifespan(user_store: UserStore, policy: AccessPolicy):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test services into app.state so TestClient routes see
    the isolated test DB rather than the configured one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.records = policy
        app.state.tokens = TokenRegistry()
        app.state.gate = AuthGate(app.state.tokens)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Generator[tuple[UserStore, AccessPolicy], None, None]:
    user_store, policy = _make_test_stores(uuid.uuid4().hex)
    yield user_store, policy
    user_store.close()


@pytest.fixture
def user_store(stores) -> UserStore:
    return stores[0]


@pytest.fixture
def policy(stores) -> AccessPolicy:
    return stores[1]


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient for the JSON endpoints, one per test module.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use an isolated in-memory store.
    """
    user_store, policy = _make_test_stores(f"api_{uuid.uuid4().hex}")
    app.router.lifespan_context = _patch_lifespan(user_store, policy)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    user_store.close()


@pytest.fixture
def web_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, user_store) for web route integration tests.

    Function-scoped: the session cookie lives in the client's cookie jar, so
    every test starts logged out and on an empty database.

    follow_redirects=False is essential for web route tests: we assert on
    redirect *locations* (e.g. 302 to /login), which are invisible once
    the client follows the redirect and returns the final 200 response.
    """
    user_store, policy = _make_test_stores(f"web_{uuid.uuid4().hex}")
    app.router.lifespan_context = _patch_lifespan(user_store, policy)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, user_store

    user_store.close()


# ---------------------------------------------------------------------------
# Web helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def register_user():
    """Return a function that registers an account through POST /register."""

    def _register(client: TestClient, nick: str, password: str = "password123", **fields) -> None:
        data = {"nick": nick, "passwd": password, "email": f"{nick}@example.org", "type": "0"}
        data.update(fields)
        resp = client.post("/register", data=data)
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"

    return _register


@pytest.fixture
def login_user():
    """Return a function that logs in through POST /login."""

    def _login(client: TestClient, login: str, password: str) -> None:
        resp = client.post("/login", data={"nick": login, "passwd": password})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"

    return _login
