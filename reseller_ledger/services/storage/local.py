"""
Local Storage Implementation

DESIGN DECISION: Local mode keeps each collection as one serialized
snapshot under its own key. Every successful add/update/delete writes
the entire resulting collection back (write-through), not a patch or an
append log.

TRADEOFFS:
- O(collection size) per write (fine at a reseller's volume)
- Recovery is trivial: the stored value is always a complete snapshot
- A corrupt snapshot is replaced by the sample dataset instead of
  blocking the app
"""

import os
import tempfile
from pathlib import Path
from typing import Callable, Generic, Optional, Union
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from reseller_ledger.audit import AuditLogger
from reseller_ledger.errors import LocalParseError, RecordNotFoundError
from reseller_ledger.models.audit import AuditEventBuilder
from reseller_ledger.models.records import DraftRecord, RecordT
from reseller_ledger.services.storage.interface import (
    Collection,
    KeyValueStore,
    Unsubscribe,
)


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used in tests and for throwaway sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore(KeyValueStore):
    """
    One file per key under a data directory.

    Writes go to a temporary file in the same directory and are moved
    into place, so a crash never leaves a half-written snapshot.
    """

    def __init__(self, data_dir: Union[str, Path]):
        self._data_dir = Path(data_dir)

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._data_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        self._data_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=self._data_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)


class LocalCollectionAdapter(Generic[RecordT]):
    """
    Durable device-local backing for one collection.

    Loads lazily on first use. Never attaches `owner_id`: any value a
    caller supplies is stripped before the record is stored.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        collection: Collection,
        record_type: type[RecordT],
        seed: Callable[[], list[RecordT]],
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._key = key
        self._collection = collection
        self._record_type = record_type
        self._seed = seed
        self._audit_logger = audit_logger
        self._list_adapter = TypeAdapter(list[record_type])
        self._records: Optional[list[RecordT]] = None
        self._listeners: dict[int, Callable[[list[RecordT]], None]] = {}
        self._next_handle = 0

    @property
    def collection(self) -> Collection:
        return self._collection

    # -------------------------------------------------------------------------
    # Snapshot I/O
    # -------------------------------------------------------------------------

    def _read_snapshot(self) -> list[RecordT]:
        """
        Read the stored snapshot, seeding defaults when absent or corrupt.

        A corrupt snapshot (bad encoding, bad JSON, invalid records) is a
        recoverable LocalParseError: it is logged and replaced, never
        raised. Local records never carry an owner.
        """
        try:
            raw = self._store.get(self._key)
            records = None if raw is None else self._list_adapter.validate_json(raw)
        except (UnicodeDecodeError, ValidationError) as e:
            error = LocalParseError(f"Corrupt {self._collection.value} snapshot: {e}")
            return self._reseed(corrupt=True, error_message=str(error))

        if records is None:
            return self._reseed(corrupt=False)
        return [
            record.model_copy(update={"owner_id": None}) if record.owner_id else record
            for record in records
        ]

    def _reseed(self, corrupt: bool, error_message: Optional[str] = None) -> list[RecordT]:
        records = [
            record.model_copy(update={"owner_id": None}) for record in self._seed()
        ]
        self._write_snapshot(records)
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.local_snapshot_seeded(
                self._collection.value,
                len(records),
                corrupt=corrupt,
                error_message=error_message,
            ))
        return records

    def _write_snapshot(self, records: list[RecordT]) -> None:
        payload = self._list_adapter.dump_json(
            records, by_alias=True, exclude_none=True
        )
        self._store.set(self._key, payload.decode("utf-8"))

    def _current(self) -> list[RecordT]:
        if self._records is None:
            self._records = self._read_snapshot()
        return self._records

    def _commit(self, records: list[RecordT]) -> None:
        """Write-through the full collection, then notify subscribers."""
        self._write_snapshot(records)
        self._records = records
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners.values()):
            listener(list(snapshot))

    # -------------------------------------------------------------------------
    # Entity operations
    # -------------------------------------------------------------------------

    def snapshot(self) -> list[RecordT]:
        """The full current collection (a copy)."""
        return list(self._current())

    def add(self, draft: DraftRecord) -> RecordT:
        """Assign a random id and persist the new record."""
        record = self._record_type(
            **draft.model_dump(exclude={"id", "owner_id"}),
            id=uuid4().hex,
        )
        self._commit(self._current() + [record])
        return record

    def update(self, record: RecordT) -> None:
        """
        Replace the stored record with the same id.

        Raises:
            RecordNotFoundError: If no record has this id
        """
        records = self._current()
        for index, existing in enumerate(records):
            if existing.id == record.id:
                updated = list(records)
                updated[index] = record.model_copy(update={"owner_id": None})
                self._commit(updated)
                return

        raise RecordNotFoundError(
            f"{self._collection.value} record not found: {record.id}"
        )

    def delete(self, record_id: str) -> bool:
        """
        Permanently remove a record.

        Returns:
            True if a record was removed, False if it was already absent
        """
        records = self._current()
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        self._commit(remaining)
        return True

    def subscribe(self, callback: Callable[[list[RecordT]], None]) -> Unsubscribe:
        """
        Register a listener for full-collection snapshots.

        The current snapshot is delivered immediately.
        """
        handle = self._next_handle
        self._next_handle += 1
        self._listeners[handle] = callback

        def unsubscribe() -> None:
            self._listeners.pop(handle, None)

        callback(self.snapshot())
        return unsubscribe
