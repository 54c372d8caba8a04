"""
auth/credentials.py -- Credential model: validation, password digests, login.

Security design decisions:
  Passwords: SHA-512 over the UTF-8 bytes, base64 encoded. The digest is
       deterministic so the store can match (login, digest) in one query.
       There is NO salt -- identical passwords produce identical digests and
       a leaked table is open to precomputed attacks. This is a known
       limitation kept for compatibility with existing databases; moving to
       a salted or memory-hard hash changes every stored value and needs a
       migration path.

  Validation happens before hashing: the length rule applies to the
       plaintext, never to the digest.

  Login: the store compares (nick OR email, digest). A wrong nick and a wrong
       password produce the same message.

Layer rule: no imports from api/, web/ or records/.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from auth.models import SELF_SERVICE_TYPES, User
from core.errors import InvalidCredentials, NotFound

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("wwwbase.auth")

MIN_PASSWORD_LENGTH = 8


def hash_password(plain: str) -> str:
    """Return base64(SHA-512(plain)). Same input, same digest."""
    digest = hashlib.sha512(plain.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def validate_user(user: User, *, check_password: bool = True, check_type: bool = True) -> None:
    """Raise InvalidCredentials if the user's fields are not acceptable.

    check_password=False is used by settings updates that leave the password
    field empty (the stored digest is kept). check_type=False is used by
    updates, where the type column is immutable.
    """
    if not user.nick:
        raise InvalidCredentials("Empty login")
    if check_password and len(user.passwd) < MIN_PASSWORD_LENGTH:
        raise InvalidCredentials(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
    if "@" not in user.email:
        raise InvalidCredentials("Wrong Email format")
    if check_type and user.type not in SELF_SERVICE_TYPES:
        raise InvalidCredentials("Invalid account type")


def register(store: UserStore, user: User) -> User:
    """Validate, hash and persist a new account. Returns it with its id set.

    Raises InvalidCredentials or Conflict; nothing is written on failure.
    """
    validate_user(user)
    stored = replace(user, passwd=hash_password(user.passwd), id=None)
    stored.id = store.create_user(stored)
    logger.info("Registered user %r (id=%d)", stored.nick, stored.id)
    return stored


def update_account(
    store: UserStore,
    current: User,
    *,
    email: str,
    website: str = "",
    fullname: str = "",
    new_password: str = "",
) -> User:
    """Apply a settings form to the authenticated account.

    The id comes from `current` (the resolved identity), never from the
    submitted form. The account is re-read from the store first: `current` is
    the snapshot taken at login, and another session may have changed the
    password since. An empty new_password keeps the stored digest.
    """
    stored = store.get_user(current.id)
    if stored is None:
        raise NotFound("User not found")
    updated = replace(
        stored,
        email=email.strip(),
        website=website.strip(),
        fullname=fullname.strip(),
        passwd=new_password or stored.passwd,
    )
    validate_user(updated, check_password=bool(new_password), check_type=False)
    if new_password:
        updated.passwd = hash_password(new_password)
    store.update_user(updated)
    logger.info("Updated settings for user id=%d", updated.id)
    return updated


def authenticate(store: UserStore, login: str, password: str) -> User:
    """Return the account matching (nick or email, password).

    Raises InvalidCredentials on any mismatch.
    """
    user = store.find_user_by_credential(login, hash_password(password))
    if user is None:
        logger.info("Login failed for %r", login)
        raise InvalidCredentials("Wrong nick/email or password")
    return user
