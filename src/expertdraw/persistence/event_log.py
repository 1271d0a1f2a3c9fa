"""Operator event log - append-only trail of who drew and replaced whom.

This is the operator-facing activity log, separate from the audit
entries stored inside each SelectionRecord. The service delivers to it
on a best-effort basis: a failed append is reported as a warning and
never rolls back a committed draw or replacement.

Events are immutable once written. Each carries the SHA-256 of its
canonical JSON, and the log can be persisted to a JSONL file (one JSON
object per line) that is verified on reload.
"""

from __future__ import annotations

import enum
import hashlib
import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
EVENT_ID_PREFIX = "EVT-"


class EventKind(str, enum.Enum):
    """Classification of operator events."""
    SELECTION_CREATED = "selection_created"
    EXPERT_DRAWN = "expert_drawn"
    EXPERT_REPLACED = "expert_replaced"


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable operator event.

    ``actor_id`` is the operator who triggered the action.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime(TIMESTAMP_FORMAT)
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, actor_id, payload,
            ),
        )


class EventLog:
    """Append-only operator event log with optional JSONL persistence.

    Thread-safe: appends are serialised by an internal lock, so event
    ids stay unique and file lines never interleave. Ids are issued from
    a counter that always runs past the highest ``EVT-`` number already
    in the log, including events recovered from a file.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._event_ids: set[str] = set()
        self._next_seq = 1
        self._storage_path = storage_path
        self._lock = threading.Lock()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def record(
        self,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
    ) -> EventRecord:
        """Create and append an event with the next free sequential id."""
        with self._lock:
            event_id = f"{EVENT_ID_PREFIX}{self._next_seq:08d}"
            while event_id in self._event_ids:
                self._next_seq += 1
                event_id = f"{EVENT_ID_PREFIX}{self._next_seq:08d}"
            event = EventRecord.create(
                event_id=event_id,
                event_kind=event_kind,
                actor_id=actor_id,
                payload=payload,
            )
            # Write before publishing so a failed write leaves the log unchanged.
            if self._storage_path:
                self._append_to_file(event)
            self._publish(event)
        return event

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events, optionally filtered by kind."""
        with self._lock:
            events = list(self._events)
        if kind is None:
            return events
        return [e for e in events if e.event_kind == kind]

    def events_for_record(self, record_id: str) -> list[EventRecord]:
        return [e for e in self.events() if e.payload.get("record_id") == record_id]

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _publish(self, event: EventRecord) -> None:
        self._events.append(event)
        self._event_ids.add(event.event_id)
        seq = _sequence_number(event.event_id)
        if seq is not None and seq >= self._next_seq:
            self._next_seq = seq + 1

    def _append_to_file(self, event: EventRecord) -> None:
        record = {
            "event_id": event.event_id,
            "event_kind": event.event_kind.value,
            "timestamp_utc": event.timestamp_utc,
            "actor_id": event.actor_id,
            "payload": event.payload,
            "event_hash": event.event_hash,
        }
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate event IDs.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)
                event_id = data["event_id"]

                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                expected_hash = _canonical_hash(
                    event_id,
                    data["event_kind"],
                    data["timestamp_utc"],
                    data["actor_id"],
                    data["payload"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                self._publish(EventRecord(
                    event_id=event_id,
                    event_kind=EventKind(data["event_kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    actor_id=data["actor_id"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                ))


def _sequence_number(event_id: str) -> Optional[int]:
    """Numeric part of an ``EVT-`` id, or None for any other id."""
    if not event_id.startswith(EVENT_ID_PREFIX):
        return None
    digits = event_id[len(EVENT_ID_PREFIX):]
    return int(digits) if digits.isdigit() else None
