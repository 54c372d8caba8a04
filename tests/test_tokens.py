"""
tests/test_tokens.py -- Unit tests for auth/tokens.py (TokenRegistry).

Covers:
  - issue/resolve/revoke round trip, revoke idempotence
  - malformed tokens resolve to None
  - uniqueness of live tokens under concurrent issue()
  - bounded redraw when the random source keeps colliding
"""

from __future__ import annotations

import threading
from unittest.mock import patch

import pytest

from auth.models import User
from auth.tokens import TokenRegistry

ALICE = User(nick="alice", email="alice@example.org", id=2)
BOB = User(nick="bob", email="bob@example.org", id=3)


def test_issue_then_resolve() -> None:
    registry = TokenRegistry()
    token = registry.issue(ALICE)
    assert token > 0
    assert registry.resolve(token) is ALICE
    assert token in registry


def test_revoke_forgets_token() -> None:
    registry = TokenRegistry()
    token = registry.issue(ALICE)
    registry.revoke(token)
    assert registry.resolve(token) is None
    assert len(registry) == 0


def test_revoke_is_idempotent() -> None:
    registry = TokenRegistry()
    token = registry.issue(ALICE)
    registry.revoke(token)
    registry.revoke(token)
    registry.revoke(12345)
    assert len(registry) == 0


@pytest.mark.parametrize("token", [None, "123", 1.5, True, [1]])
def test_malformed_tokens_resolve_to_none(token) -> None:
    registry = TokenRegistry()
    registry.issue(ALICE)
    assert registry.resolve(token) is None
    registry.revoke(token)
    assert len(registry) == 1


def test_revoke_user_drops_only_that_user() -> None:
    registry = TokenRegistry()
    a1 = registry.issue(ALICE)
    a2 = registry.issue(ALICE)
    b1 = registry.issue(BOB)
    assert registry.revoke_user(ALICE.id) == 2
    assert a1 not in registry and a2 not in registry
    assert registry.resolve(b1) is BOB


def test_concurrent_issue_yields_distinct_tokens() -> None:
    registry = TokenRegistry()
    issued: list[int] = []
    lock = threading.Lock()

    def worker() -> None:
        local = [registry.issue(ALICE) for _ in range(200)]
        with lock:
            issued.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(issued) == 1600
    assert len(set(issued)) == 1600
    assert len(registry) == 1600


def test_collision_is_redrawn() -> None:
    registry = TokenRegistry()
    with patch("auth.tokens.secrets.randbits", side_effect=[42, 42, 0, 43]):
        first = registry.issue(ALICE)
        second = registry.issue(BOB)
    assert (first, second) == (42, 43)
    assert registry.resolve(43) is BOB


def test_exhausted_draws_raise() -> None:
    registry = TokenRegistry()
    with patch("auth.tokens.secrets.randbits", return_value=0):
        with pytest.raises(RuntimeError):
            registry.issue(ALICE)
    assert len(registry) == 0
