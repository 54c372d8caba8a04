"""
auth/flash.py -- One-shot named messages carried in the session.

A mutating request (login, add, edit...) ends with a redirect; the message
describing its outcome is stored in the session and shown by the next page
render, then discarded.

Storage is the session mapping itself (Starlette's request.session, a dict
serialized into the signed cookie), under FLASH_KEY:

    {"_flashes": {"error": "Wrong Email format", "info": "new element added"}}

One pending message per name: a newer message replaces an unread one, so a
run of POSTs without a page render in between reports only the last outcome
and the cookie never grows.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

FLASH_KEY = "_flashes"
ERROR = "error"
INFO = "info"


def set_flash(session: MutableMapping[str, Any], name: str, message: str) -> None:
    """Set the pending message for name, replacing any unread one."""
    flashes = session.get(FLASH_KEY)
    if not isinstance(flashes, dict):
        flashes = {}
    flashes[name] = message
    session[FLASH_KEY] = flashes


def pop_flash(session: MutableMapping[str, Any], name: str) -> str:
    """Return and remove the message pending under name, or ""."""
    flashes = session.get(FLASH_KEY)
    if not isinstance(flashes, dict) or name not in flashes:
        return ""
    message = flashes.pop(name)
    if flashes:
        session[FLASH_KEY] = flashes
    else:
        session.pop(FLASH_KEY, None)
    return message if isinstance(message, str) else ""


def drain_flashes(session: MutableMapping[str, Any]) -> dict[str, str]:
    """Pop the error and the info message for rendering."""
    return {ERROR: pop_flash(session, ERROR), INFO: pop_flash(session, INFO)}
