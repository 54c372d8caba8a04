"""
records/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper (same as auth/store.py). RecordStore is the
repository; _row_to_record is the mapper.

The data table is declared on the MetaData from auth/store.py and the store
runs on the UserStore's engine: data.uid is a foreign key to user.id with
ON DELETE CASCADE, which only holds inside one database.

Visibility is applied in SQL here as well as in records/access.py:
  list_data(viewer_id)  public records plus those owned by viewer_id
                        (viewer_id 0 = anonymous, public only)
  list_all_data()       everything, for the administrator
Results are always ordered by id, i.e. insertion order.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    users = UserStore(db_url)
    store = RecordStore(users.engine)
    record_id = store.create_data(Record(uid=2, name="n", content="c"))
    store.list_data(2)
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table, Text, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.store import metadata
from auth.store import users_table as _users
from core.errors import InvalidRecord, NotFound
from records.models import Record

ANONYMOUS_VIEWER = 0

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_data = Table(
    "data",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("uid", Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("content", Text, nullable=False),
    Column("public", Boolean, nullable=False, server_default="0"),
    sqlite_autoincrement=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def owner_label(nick: str, fullname: str) -> str:
    """Display string for a record's owner: "Fullname(nick)" or just "nick"."""
    if not fullname:
        return nick
    return f"{fullname}({nick})"


def _listing():
    return (
        select(_data, _users.c.nick, _users.c.fullname)
        .select_from(_data.join(_users, _users.c.id == _data.c.uid))
        .order_by(_data.c.id)
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RecordStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_data(self, viewer_id: int) -> list[Record]:
        """Public records plus those owned by viewer_id, in insertion order."""
        query = _listing().where(or_(_data.c.public.is_(True), _data.c.uid == viewer_id))
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_record(r) for r in rows]

    def list_all_data(self) -> list[Record]:
        """Every record, in insertion order. Administrator path only."""
        with self.engine.connect() as conn:
            rows = conn.execute(_listing()).fetchall()
        return [_row_to_record(r) for r in rows]

    def get_data(self, record_id: int) -> Record | None:
        with self.engine.connect() as conn:
            row = conn.execute(_listing().where(_data.c.id == record_id)).fetchone()
        return _row_to_record(row) if row is not None else None

    def load_owners(self) -> dict[int, int]:
        """Return {record id: owner uid} for every persisted record."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(_data.c.id, _data.c.uid)).fetchall()
        return {row.id: row.uid for row in rows}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_data(self, record: Record) -> int:
        """Insert record and return its id. Raises InvalidRecord if record.uid is unknown."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _data.insert().values(
                        uid=record.uid,
                        name=record.name,
                        content=record.content,
                        public=bool(record.public),
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise InvalidRecord("Unknown owner") from exc

    def update_data(self, record: Record) -> None:
        """Update name, content and visibility of record.id.

        The WHERE clause matches both id and uid, so a stale or forged owner
        never updates somebody else's row. Raises NotFound when nothing matched.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _data.update()
                .where((_data.c.id == record.id) & (_data.c.uid == record.uid))
                .values(name=record.name, content=record.content, public=bool(record.public))
            )
            conn.commit()
        if result.rowcount == 0:
            raise NotFound("Record not found")

    def delete_data(self, record_id: int, uid: int | None = None) -> None:
        """Delete record_id (restricted to owner uid when given). Raises NotFound when nothing matched."""
        condition = _data.c.id == record_id
        if uid is not None:
            condition = condition & (_data.c.uid == uid)
        with self.engine.connect() as conn:
            result = conn.execute(_data.delete().where(condition))
            conn.commit()
        if result.rowcount == 0:
            raise NotFound("Record not found")


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> Record:
    return Record(
        id=row.id,
        uid=row.uid,
        name=row.name,
        content=row.content,
        public=bool(row.public),
        owner=owner_label(row.nick, row.fullname or ""),
    )
