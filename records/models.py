"""
records/models.py -- Domain dataclass for user records.

Pure data container. Validation and the visibility/ownership rules live in
records/access.py; SQL lives in records/store.py.
"""

from dataclasses import dataclass


@dataclass
class Record:
    """A named piece of content owned by one user.

    uid is the owner's user id and never changes after creation. owner is a
    display string ("Fullname(nick)" or "nick") filled in by listing queries
    only; it is never used for authorization.

    id is None before the record is written to the database.
    """

    name: str
    content: str
    public: bool = False
    uid: int = 0
    id: int | None = None
    owner: str = ""
