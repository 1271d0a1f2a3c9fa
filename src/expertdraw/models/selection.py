"""Selection data models - requirements, allocations, audit entries, records.

A SelectionRecord is the permanent audit artifact of one project draw.
It is created once by the Selection Engine, amended only by the
Replacement Engine, and never deleted.

Invariants:
- The expert ids of a record's entries form a set: no expert appears
  twice, even across categories, for the lifetime of the record.
- The audit log is append-only and ordered by creation time.
- Status moves CLEAN -> AMENDED only; there is no way back.
- An entry's category name is a snapshot taken at draw time. Later
  renames never rewrite history.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


class RecordStatus(str, enum.Enum):
    """Lifecycle of a selection record.

    CLEAN → AMENDED (after the first successful replacement)
    """
    CLEAN = "clean"
    AMENDED = "amended"


class ProjectStatus(str, enum.Enum):
    NEW = "new"
    DRAWING = "drawing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AuditEntryKind(str, enum.Enum):
    INITIAL = "initial"
    REPLACEMENT = "replacement"


@dataclass(frozen=True)
class SelectionRequirement:
    """How many experts to draw from one category, and whom to avoid.

    The avoidance set holds expert ids excluded from this draw
    (conflict of interest, recusal).
    """
    category_id: str
    count: int
    avoid_expert_ids: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class AllocationEntry:
    """One drawn expert within a record."""
    expert_id: str
    category_id: str
    category_name: str          # Snapshot at draw time


@dataclass(frozen=True)
class AuditEntry:
    """An immutable line in a record's audit log.

    INITIAL entries carry the category name and the drawn expert.
    REPLACEMENT entries carry both expert names and the operator's
    reason, which is never empty.
    """
    kind: AuditEntryKind
    timestamp_utc: datetime
    new_expert_name: str
    message: str
    category_name: Optional[str] = None
    replaced_expert_name: Optional[str] = None
    reason: Optional[str] = None

    @staticmethod
    def initial(
        category_name: str,
        expert_name: str,
        timestamp_utc: Optional[datetime] = None,
    ) -> AuditEntry:
        return AuditEntry(
            kind=AuditEntryKind.INITIAL,
            timestamp_utc=timestamp_utc or datetime.now(timezone.utc),
            new_expert_name=expert_name,
            message=f'Drew expert from category "{category_name}"',
            category_name=category_name,
        )

    @staticmethod
    def replacement(
        replaced_expert_name: str,
        new_expert_name: str,
        reason: str,
        timestamp_utc: Optional[datetime] = None,
    ) -> AuditEntry:
        if not reason or not reason.strip():
            raise ValueError("Replacement audit entry requires a reason")
        return AuditEntry(
            kind=AuditEntryKind.REPLACEMENT,
            timestamp_utc=timestamp_utc or datetime.now(timezone.utc),
            new_expert_name=new_expert_name,
            message=f"Replacement for {replaced_expert_name}",
            replaced_expert_name=replaced_expert_name,
            reason=reason,
        )


@dataclass(frozen=True)
class ProjectInfo:
    """Immutable project metadata captured when the draw is made."""
    project_id: int
    project_no: str
    project_name: str
    organization_unit: str
    extract_date: str           # YYYY-MM-DD
    operator_id: str
    supervisor: str
    status: ProjectStatus = ProjectStatus.COMPLETED


@dataclass
class SelectionRecord:
    """The persisted outcome of an allocation plus its full audit trail.

    ``entries`` is ordered by insertion (audit order). ``version`` is
    bumped by the record store on every committed update.
    """
    record_id: str
    project: ProjectInfo
    entries: list[AllocationEntry] = field(default_factory=list)
    log: list[AuditEntry] = field(default_factory=list)
    status: RecordStatus = RecordStatus.CLEAN
    created_utc: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    version: int = 0

    def expert_ids(self) -> set[str]:
        """Identity keys of all currently allocated experts."""
        return {e.expert_id for e in self.entries}

    def entry_for(self, expert_id: str) -> Optional[AllocationEntry]:
        for entry in self.entries:
            if entry.expert_id == expert_id:
                return entry
        return None

    def replacement_count(self) -> int:
        return sum(1 for e in self.log if e.kind == AuditEntryKind.REPLACEMENT)
