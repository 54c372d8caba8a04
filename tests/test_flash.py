"""
tests/test_flash.py -- Unit tests for the session flash queue (auth/flash.py).
"""

from __future__ import annotations

from auth.flash import ERROR, FLASH_KEY, INFO, drain_flashes, pop_flash, set_flash


def test_set_then_pop_once() -> None:
    session: dict = {}
    set_flash(session, ERROR, "Wrong Email format")
    assert pop_flash(session, ERROR) == "Wrong Email format"
    assert pop_flash(session, ERROR) == ""


def test_pop_missing_name_returns_empty() -> None:
    assert pop_flash({}, INFO) == ""


def test_names_are_independent() -> None:
    session: dict = {}
    set_flash(session, ERROR, "bad")
    set_flash(session, INFO, "good")
    assert pop_flash(session, INFO) == "good"
    assert pop_flash(session, ERROR) == "bad"


def test_newer_message_replaces_unread_one() -> None:
    session: dict = {}
    set_flash(session, INFO, "first")
    set_flash(session, INFO, "second")
    assert session[FLASH_KEY] == {INFO: "second"}
    assert pop_flash(session, INFO) == "second"
    assert pop_flash(session, INFO) == ""


def test_session_cleaned_after_last_pop() -> None:
    session: dict = {"token": 7}
    set_flash(session, ERROR, "x")
    pop_flash(session, ERROR)
    assert FLASH_KEY not in session
    assert session == {"token": 7}


def test_corrupt_storage_is_ignored() -> None:
    session: dict = {FLASH_KEY: "not a dict"}
    assert pop_flash(session, ERROR) == ""
    set_flash(session, ERROR, "recovered")
    assert pop_flash(session, ERROR) == "recovered"


def test_drain_returns_both_kinds() -> None:
    session: dict = {}
    set_flash(session, INFO, "settings updated")
    assert drain_flashes(session) == {ERROR: "", INFO: "settings updated"}
    assert drain_flashes(session) == {ERROR: "", INFO: ""}
