"""Selection record store - owns the lifetime of every SelectionRecord.

Records are created once, amended through update(), listed and read,
and never deleted. The store is the only place a record is mutated.

Concurrency:
- update() on one record holds that record's lock for the whole
  read-mutate-write cycle, so two replacements on the same record can
  never both start from the same "before" state.
- Records have independent locks. Mutations of different records do
  not wait on each other; the shared registry lock is held only for
  dictionary lookups and swaps.
- Callers always receive deep copies. Stored records change only by
  wholesale replacement inside update().

Persistence (optional): one ``<record_id>.json`` file per record in a
storage directory. Each write goes to a temporary file that atomically
replaces the previous version, under the record's lock. A failed write
raises OSError and leaves both the file and the in-memory record as
they were.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from expertdraw.errors import ConcurrentMutationConflict, RecordNotFound
from expertdraw.models.selection import (
    AllocationEntry,
    AuditEntry,
    AuditEntryKind,
    ProjectInfo,
    ProjectStatus,
    RecordStatus,
    SelectionRecord,
)

logger = logging.getLogger(__name__)

RecordMutator = Callable[[SelectionRecord], SelectionRecord]


@dataclass(frozen=True)
class RecordFilter:
    """Criteria for listing records. Unset fields match everything."""
    status: Optional[RecordStatus] = None
    project_name_contains: Optional[str] = None
    operator_id: Optional[str] = None

    def matches(self, record: SelectionRecord) -> bool:
        if self.status is not None and record.status != self.status:
            return False
        if self.project_name_contains:
            needle = self.project_name_contains.casefold()
            if needle not in record.project.project_name.casefold():
                return False
        if self.operator_id is not None and record.project.operator_id != self.operator_id:
            return False
        return True


class SelectionRecordStore:
    """In-memory record store with per-record locking.

    Usage:
        store = SelectionRecordStore(Path("data/records"))
        store.create(record)
        amended = store.update(record.record_id, lambda r: engine.replace(r, ...))
        clean = store.list(RecordFilter(status=RecordStatus.CLEAN))
    """

    def __init__(self, storage_dir: Optional[Path] = None) -> None:
        self._records: dict[str, SelectionRecord] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._storage_dir = storage_dir

        if storage_dir is not None:
            storage_dir.mkdir(parents=True, exist_ok=True)
            self._load_from_dir(storage_dir)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def create(self, record: SelectionRecord) -> SelectionRecord:
        """Persist a freshly allocated record.

        Raises ValueError if the record id is already taken, the entries
        contain a duplicate expert, or the record is not CLEAN.
        """
        if not record.record_id:
            raise ValueError("Cannot create record with blank ID")
        if record.status != RecordStatus.CLEAN:
            raise ValueError("New records must be CLEAN")
        _check_unique_experts(record)

        lock = threading.Lock()
        with self._registry_lock:
            if record.record_id in self._locks:
                raise ValueError(f"Duplicate record ID: {record.record_id}")
            # Reserve the id before writing so a concurrent create fails fast.
            self._locks[record.record_id] = lock

        stored = copy.deepcopy(record)
        stored.version = 0
        with lock:
            try:
                self._write(stored)
            except OSError:
                with self._registry_lock:
                    del self._locks[record.record_id]
                raise
            with self._registry_lock:
                self._records[record.record_id] = stored

        logger.debug("Created selection record %s", record.record_id)
        return copy.deepcopy(stored)

    def get(self, record_id: str) -> SelectionRecord:
        """Return a copy of a record. Raises RecordNotFound."""
        with self._registry_lock:
            record = self._records.get(record_id)
        if record is None:
            raise RecordNotFound(record_id)
        return copy.deepcopy(record)

    def update(
        self,
        record_id: str,
        mutator: RecordMutator,
        expected_version: Optional[int] = None,
    ) -> SelectionRecord:
        """Apply ``mutator`` to a record atomically.

        The mutator receives a private copy of the current record and
        returns the new record. If it raises, nothing changes. The
        result must keep the record's identity, project snapshot and
        existing audit log intact, and its status may never return to
        CLEAN once AMENDED.

        Raises:
            RecordNotFound: no such record.
            ConcurrentMutationConflict: ``expected_version`` is stale.
            OSError: the new version could not be written.
        """
        lock = self._lock_for(record_id)
        with lock:
            with self._registry_lock:
                current = self._records[record_id]

            if expected_version is not None and current.version != expected_version:
                raise ConcurrentMutationConflict(
                    record_id, expected_version, current.version,
                )

            updated = mutator(copy.deepcopy(current))
            _check_transition(current, updated)
            updated.version = current.version + 1

            self._write(updated)
            with self._registry_lock:
                self._records[record_id] = updated

        logger.debug(
            "Updated selection record %s to version %d",
            record_id, updated.version,
        )
        return copy.deepcopy(updated)

    def list(self, record_filter: Optional[RecordFilter] = None) -> list[SelectionRecord]:
        """Return copies of matching records, oldest first."""
        with self._registry_lock:
            records = list(self._records.values())
        if record_filter is not None:
            records = [r for r in records if record_filter.matches(r)]
        records.sort(key=lambda r: r.created_utc)
        return [copy.deepcopy(r) for r in records]

    @property
    def count(self) -> int:
        return len(self._records)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_for(self, record_id: str) -> threading.Lock:
        with self._registry_lock:
            if record_id not in self._records:
                raise RecordNotFound(record_id)
            return self._locks[record_id]

    def _write(self, record: SelectionRecord) -> None:
        """Atomically write one record file (no-op without storage)."""
        if self._storage_dir is None:
            return
        target = self._storage_dir / f"{record.record_id}.json"
        fd, tmp_name = tempfile.mkstemp(
            dir=self._storage_dir, prefix=f".{record.record_id}.", suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(
                    record_to_dict(record), f,
                    indent=2, sort_keys=True, ensure_ascii=False,
                )
            os.replace(tmp_name, target)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _load_from_dir(self, path: Path) -> None:
        """Load every record file. Fail-closed on malformed records."""
        for file in sorted(path.glob("*.json")):
            with file.open("r", encoding="utf-8") as f:
                data = json.load(f)
            record = record_from_dict(data)
            if record.record_id != file.stem:
                raise ValueError(
                    f"Record file {file.name} holds record {record.record_id}"
                )
            _check_unique_experts(record)
            self._records[record.record_id] = record
            self._locks[record.record_id] = threading.Lock()
        logger.debug("Loaded %d selection records from %s", len(self._records), path)


def _check_unique_experts(record: SelectionRecord) -> None:
    ids = [e.expert_id for e in record.entries]
    if len(ids) != len(set(ids)):
        raise ValueError(f"Record {record.record_id} allocates an expert twice")


def _check_transition(before: SelectionRecord, after: SelectionRecord) -> None:
    """Reject mutations that would break a record's lifetime invariants."""
    if after.record_id != before.record_id:
        raise ValueError("A mutation cannot change the record ID")
    if after.project != before.project:
        raise ValueError("A mutation cannot change the project snapshot")
    if after.created_utc != before.created_utc:
        raise ValueError("A mutation cannot change the creation time")
    if after.log[:len(before.log)] != before.log:
        raise ValueError("Audit log is append-only")
    if before.status == RecordStatus.AMENDED and after.status == RecordStatus.CLEAN:
        raise ValueError("An amended record cannot return to clean")
    _check_unique_experts(after)


# ----------------------------------------------------------------------
# Serialisation
# ----------------------------------------------------------------------


def record_to_dict(record: SelectionRecord) -> dict[str, Any]:
    p = record.project
    return {
        "record_id": record.record_id,
        "project": {
            "project_id": p.project_id,
            "project_no": p.project_no,
            "project_name": p.project_name,
            "organization_unit": p.organization_unit,
            "extract_date": p.extract_date,
            "operator_id": p.operator_id,
            "supervisor": p.supervisor,
            "status": p.status.value,
        },
        "entries": [
            {
                "expert_id": e.expert_id,
                "category_id": e.category_id,
                "category_name": e.category_name,
            }
            for e in record.entries
        ],
        "log": [
            {
                "kind": a.kind.value,
                "timestamp_utc": a.timestamp_utc.isoformat(),
                "new_expert_name": a.new_expert_name,
                "message": a.message,
                "category_name": a.category_name,
                "replaced_expert_name": a.replaced_expert_name,
                "reason": a.reason,
            }
            for a in record.log
        ],
        "status": record.status.value,
        "created_utc": record.created_utc.isoformat(),
        "version": record.version,
    }


def record_from_dict(data: dict[str, Any]) -> SelectionRecord:
    p = data["project"]
    return SelectionRecord(
        record_id=data["record_id"],
        project=ProjectInfo(
            project_id=p["project_id"],
            project_no=p["project_no"],
            project_name=p["project_name"],
            organization_unit=p["organization_unit"],
            extract_date=p["extract_date"],
            operator_id=p["operator_id"],
            supervisor=p["supervisor"],
            status=ProjectStatus(p["status"]),
        ),
        entries=[
            AllocationEntry(
                expert_id=e["expert_id"],
                category_id=e["category_id"],
                category_name=e["category_name"],
            )
            for e in data["entries"]
        ],
        log=[
            AuditEntry(
                kind=AuditEntryKind(a["kind"]),
                timestamp_utc=datetime.fromisoformat(a["timestamp_utc"]),
                new_expert_name=a["new_expert_name"],
                message=a["message"],
                category_name=a.get("category_name"),
                replaced_expert_name=a.get("replaced_expert_name"),
                reason=a.get("reason"),
            )
            for a in data["log"]
        ],
        status=RecordStatus(data["status"]),
        created_utc=datetime.fromisoformat(data["created_utc"]),
        version=data.get("version", 0),
    )
