"""Draw errors - the closed set of failures the draw core can report.

Every failure carries a DrawErrorKind so callers can branch exhaustively
on ``error.kind`` instead of matching message text. All of these are
recoverable operator errors: none of them leaves partial state behind.
"""

from __future__ import annotations

import enum
from typing import Optional


class DrawErrorKind(str, enum.Enum):
    """Classification of draw failures."""
    INSUFFICIENT_POOL = "insufficient_pool"
    ENTRY_NOT_FOUND = "entry_not_found"
    NO_REPLACEMENT_AVAILABLE = "no_replacement_available"
    INVALID_REASON = "invalid_reason"
    CONCURRENT_MUTATION_CONFLICT = "concurrent_mutation_conflict"
    RECORD_NOT_FOUND = "record_not_found"
    INVALID_REQUIREMENT = "invalid_requirement"


class DrawError(Exception):
    """Base class for all draw failures."""

    kind: DrawErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InsufficientPool(DrawError):
    """A category has fewer eligible experts than the requirement asks for."""

    kind = DrawErrorKind.INSUFFICIENT_POOL

    def __init__(
        self,
        category_id: str,
        category_name: str,
        available: int,
        required: int,
    ) -> None:
        self.category_id = category_id
        self.category_name = category_name
        self.available = available
        self.required = required
        super().__init__(
            f'Insufficient experts in category "{category_name}": '
            f"{available} eligible, {required} required"
        )


class EntryNotFound(DrawError):
    kind = DrawErrorKind.ENTRY_NOT_FOUND

    def __init__(self, record_id: str, expert_id: str) -> None:
        self.record_id = record_id
        self.expert_id = expert_id
        super().__init__(
            f"Expert {expert_id} is not allocated in record {record_id}"
        )


class NoReplacementAvailable(DrawError):
    """Every eligible expert of the category is already in the record."""

    kind = DrawErrorKind.NO_REPLACEMENT_AVAILABLE

    def __init__(self, category_id: str, category_name: str) -> None:
        self.category_id = category_id
        self.category_name = category_name
        super().__init__(
            f'No replacement expert available in category "{category_name}"'
        )


class InvalidReason(DrawError):
    kind = DrawErrorKind.INVALID_REASON


class InvalidRequirement(DrawError):
    kind = DrawErrorKind.INVALID_REQUIREMENT


class RecordNotFound(DrawError):
    kind = DrawErrorKind.RECORD_NOT_FOUND

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Selection record not found: {record_id}")


class ConcurrentMutationConflict(DrawError):
    """The caller's view of a record is older than the stored version."""

    kind = DrawErrorKind.CONCURRENT_MUTATION_CONFLICT

    def __init__(
        self,
        record_id: str,
        expected_version: int,
        actual_version: Optional[int] = None,
    ) -> None:
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Record {record_id} changed concurrently: expected version "
            f"{expected_version}, found {actual_version}; reload and retry"
        )
