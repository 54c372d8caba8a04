"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as records/store.py).
UserStore is the repository; _row_to_user is the mapper. Route and credential
code never touches SQL directly.

The engine and MetaData created here are shared with records/store.py: the
data table carries a foreign key to user.id with ON DELETE CASCADE, so both
tables must live in the same database and the same MetaData.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Uniqueness of nick and email is enforced by UNIQUE constraints; the
  resulting IntegrityError is translated into core.errors.Conflict so callers
  never import SQLAlchemy to handle a duplicate.

Bootstrap:
  ensure_admin() is run once at startup. By convention the administrator is
  the account with id 1 and nick "admin". A database where id 1 belongs to
  someone else is refused (StartupInvariantViolation) -- the process must not
  start on top of it.

Layer rule: no imports from api/, web/ or records/.
"""

from __future__ import annotations

import logging

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import ADMIN_ID, ADMIN_NICK, User, UserType
from core.errors import Conflict, NotFound, StartupInvariantViolation

logger = logging.getLogger("wwwbase.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "user",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("nick", String(255), nullable=False, unique=True),
    Column("passwd", Text, nullable=False),  # base64(SHA-512), see auth/credentials.py
    Column("email", String(255), nullable=False, unique=True),
    Column("type", Integer, nullable=False, server_default="0"),
    Column("website", Text, nullable=False, server_default=""),
    Column("fullname", Text, nullable=False, server_default=""),
    # Ids are never reused after a delete; the bootstrap check relies on it.
    sqlite_autoincrement=True,
)

# Joined by records/store.py for owner display names.
users_table = _users


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journaling and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys=ON is what makes deleting a user
    cascade to their records.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///wwwbase.db")
        admin = store.ensure_admin("admin")
        uid = store.create_user(User(nick="alice", email="a@b.co", passwd=digest))
        user = store.find_user_by_credential("alice", digest)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_user_by_credential(self, login: str, digest: str) -> User | None:
        """Return the user whose nick OR email equals login and whose digest matches."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(
                    or_(_users.c.nick == login, _users.c.email == login),
                    _users.c.passwd == digest,
                )
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned id.

        user.passwd must already be a digest. Raises Conflict if the nick or
        the email is already taken.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        nick=user.nick,
                        passwd=user.passwd,
                        email=user.email,
                        type=int(user.type),
                        website=user.website,
                        fullname=user.fullname,
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise Conflict("Nickname or email already taken") from exc

    def update_user(self, user: User) -> None:
        """Persist password, email, website and fullname for user.id.

        nick and type are immutable and ignored. Raises Conflict on a
        duplicate email, NotFound if the account no longer exists.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.update()
                    .where(_users.c.id == user.id)
                    .values(
                        passwd=user.passwd,
                        email=user.email,
                        website=user.website,
                        fullname=user.fullname,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("Email already taken") from exc
        if result.rowcount == 0:
            raise NotFound("User not found")

    def delete_user(self, user_id: int) -> bool:
        """Delete a user; their records go with them (ON DELETE CASCADE).

        Returns True if a row was deleted. Deleting a missing user is not an
        error.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    def ensure_admin(self, password_digest: str) -> User:
        """Guarantee the administrator account exists with id 1.

        Raises StartupInvariantViolation if id 1 belongs to another nick, or
        if a fresh insert is not assigned id 1.
        """
        existing = self.get_user(ADMIN_ID)
        if existing is not None:
            if existing.nick != ADMIN_NICK:
                raise StartupInvariantViolation(
                    f"By convention, admin id should be {ADMIN_ID} (found nick {existing.nick!r})"
                )
            return existing

        admin = User(
            nick=ADMIN_NICK,
            passwd=password_digest,
            email="admin@whatev.er",
            type=UserType.ADMINISTRATOR,
            website="https://sample.whatev.er",
            fullname="Administrator",
        )
        try:
            admin.id = self.create_user(admin)
        except Conflict as exc:
            raise StartupInvariantViolation("Cannot create the admin account: nick or email already taken") from exc
        if admin.id != ADMIN_ID:
            self.delete_user(admin.id)
            raise StartupInvariantViolation(f"By convention, admin id should be {ADMIN_ID} (got {admin.id})")
        logger.info("Created bootstrap administrator (id=%d)", ADMIN_ID)
        return admin

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        nick=row.nick,
        passwd=row.passwd,
        email=row.email,
        type=UserType(row.type),
        website=row.website or "",
        fullname=row.fullname or "",
    )
