"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container). Mirrors the approach in
records/models.py -- dataclasses own domain shape; stores, the credential
model and routes do the work.

Layer rule: no imports from api/, web/ or records/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class UserType(IntEnum):
    """Account kind. Stored as an integer column.

    ADMINISTRATOR is never selectable through registration or settings; only
    the bootstrap account (id 1) holds it.
    """

    INDIVIDUAL = 0
    ORGANIZATION = 1
    ADMINISTRATOR = 2


# Types a user may pick for themselves.
SELF_SERVICE_TYPES = frozenset({UserType.INDIVIDUAL, UserType.ORGANIZATION})

ADMIN_ID = 1
ADMIN_NICK = "admin"


@dataclass
class User:
    """A registered account.

    passwd holds the plaintext only between form decoding and
    credentials.register()/update_account(); everything that comes back from
    the store carries the digest.

    id is None before the record is written to the database.
    """

    nick: str
    email: str
    passwd: str = ""
    type: int = UserType.INDIVIDUAL
    website: str = ""
    fullname: str = ""
    id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.type == UserType.ADMINISTRATOR

    def __str__(self) -> str:
        web = f"({self.website})" if self.website else ""
        fn = f"{self.fullname}/" if self.fullname else ""
        return f"{fn}{self.nick} {web}"
