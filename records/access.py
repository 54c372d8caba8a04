"""
records/access.py -- Visibility and ownership policy for records.

Who may do what:
  view    the record is public, OR the viewer owns it, OR the viewer is the
          administrator. Anonymous viewers see public records only.
  edit    the actor owns the record (according to the ownership index).
  delete  same as edit. The administrator does NOT bypass ownership for
          mutations -- the bypass is limited to visibility.

Ownership is never taken from the request: handlers pass the record id the
client submitted, and the owner comes from the OwnershipIndex, a cache of
{record id: owner uid} loaded from the store at startup and kept current on
create/delete. A failed mutation never touches the index.

Locking: the index has its own threading.Lock held for one map operation at a
time. It is never held while the store is being called.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace

from auth.models import User, UserType
from core.errors import InvalidRecord, NotFound, NotOwner
from records.models import Record
from records.store import ANONYMOUS_VIEWER, RecordStore

logger = logging.getLogger("wwwbase.records")


def validate_record(record: Record) -> None:
    """Raise InvalidRecord if the name or the content is empty."""
    if not record.name:
        raise InvalidRecord("Empty name")
    if not record.content:
        raise InvalidRecord("Empty content")


def can_view(viewer: User | None, record: Record) -> bool:
    if record.public:
        return True
    if viewer is None:
        return False
    return viewer.id == record.uid or viewer.type == UserType.ADMINISTRATOR


class OwnershipIndex:
    """Thread-safe {record id: owner uid} cache."""

    def __init__(self, owners: dict[int, int] | None = None) -> None:
        self._lock = threading.Lock()
        self._owners: dict[int, int] = dict(owners or {})

    def owner_of(self, record_id: int) -> int | None:
        with self._lock:
            return self._owners.get(record_id)

    def set(self, record_id: int, uid: int) -> None:
        with self._lock:
            self._owners[record_id] = uid

    def remove(self, record_id: int) -> None:
        with self._lock:
            self._owners.pop(record_id, None)

    def remove_owner(self, uid: int) -> int:
        with self._lock:
            stale = [rid for rid, owner in self._owners.items() if owner == uid]
            for rid in stale:
                del self._owners[rid]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._owners)


class AccessPolicy:
    """Authorization engine: every record read or write goes through here.

    Usage:
        policy = AccessPolicy.load(RecordStore(users.engine))
        policy.list_visible(viewer)
        policy.create(actor, Record(name="n", content="c"))
        policy.delete(actor, record_id)
    """

    def __init__(self, store: RecordStore, index: OwnershipIndex) -> None:
        self.store = store
        self.index = index

    @classmethod
    def load(cls, store: RecordStore) -> AccessPolicy:
        """Build the policy with an index populated from persisted records."""
        index = OwnershipIndex(store.load_owners())
        logger.info("Ownership index loaded (%d records)", len(index))
        return cls(store, index)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def owns(self, uid: int, record_id: int) -> bool:
        owner = self.index.owner_of(record_id)
        return owner is not None and owner == uid

    def list_visible(self, viewer: User | None) -> list[Record]:
        """Records viewer may see, in insertion order."""
        if viewer is None:
            records = self.store.list_data(ANONYMOUS_VIEWER)
        elif viewer.type == UserType.ADMINISTRATOR:
            records = self.store.list_all_data()
        else:
            records = self.store.list_data(viewer.id)
        return [r for r in records if can_view(viewer, r)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, actor: User, record: Record) -> Record:
        """Persist a new record owned by actor. Any submitted uid is ignored."""
        owned = replace(record, uid=actor.id, id=None, owner="")
        validate_record(owned)
        owned.id = self.store.create_data(owned)
        self.index.set(owned.id, actor.id)
        logger.info("User id=%d created record id=%d", actor.id, owned.id)
        return owned

    def edit(self, actor: User, record: Record) -> Record:
        """Update name/content/visibility of record.id on behalf of actor.

        Raises NotOwner before looking at the payload, then InvalidRecord,
        then NotFound if the row vanished underneath the index. Returns the
        record as stored, with its owner label.
        """
        if record.id is None or not self.owns(actor.id, record.id):
            logger.warning("User id=%d denied edit of record id=%s", actor.id, record.id)
            raise NotOwner()
        owned = replace(record, uid=actor.id)
        validate_record(owned)
        self.store.update_data(owned)
        stored = self.store.get_data(owned.id)
        if stored is None:
            raise NotFound("Record not found")
        return stored

    def delete(self, actor: User, record_id: int | None) -> None:
        if record_id is None or not self.owns(actor.id, record_id):
            logger.warning("User id=%d denied delete of record id=%s", actor.id, record_id)
            raise NotOwner()
        try:
            self.store.delete_data(record_id, uid=actor.id)
        except NotFound:
            # Already gone: drop the stale index entry, report as done.
            logger.info("Record id=%d already deleted", record_id)
        self.index.remove(record_id)

    def forget_owner(self, uid: int) -> int:
        """Drop index entries of a deleted account (its rows went with ON DELETE CASCADE)."""
        return self.index.remove_owner(uid)
