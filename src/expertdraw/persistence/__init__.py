"""Persistence layer - selection records, operator event log, directory state."""

from expertdraw.persistence.event_log import EventKind, EventLog, EventRecord
from expertdraw.persistence.record_store import RecordFilter, SelectionRecordStore
from expertdraw.persistence.state_store import StateStore

__all__ = [
    "EventKind",
    "EventLog",
    "EventRecord",
    "RecordFilter",
    "SelectionRecordStore",
    "StateStore",
]
