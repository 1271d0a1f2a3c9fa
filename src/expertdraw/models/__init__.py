"""Data models - experts, categories, requirements and selection records."""

from expertdraw.models.expert import Category, Expert
from expertdraw.models.selection import (
    AllocationEntry,
    AuditEntry,
    AuditEntryKind,
    ProjectInfo,
    ProjectStatus,
    RecordStatus,
    SelectionRecord,
    SelectionRequirement,
)

__all__ = [
    "AllocationEntry",
    "AuditEntry",
    "AuditEntryKind",
    "Category",
    "Expert",
    "ProjectInfo",
    "ProjectStatus",
    "RecordStatus",
    "SelectionRecord",
    "SelectionRequirement",
]
