"""Replacement engine - make-up draw for one already-allocated expert.

The replacement comes from the same category as the entry being
replaced (taken from the entry's stored category, not from current
expert data) and must not already be anywhere in the record. This keeps
the whole-record uniqueness invariant through every amendment, not just
within a category.

Not idempotent: every successful call re-runs the random draw and
appends a new audit entry.

Pure computation: the input record is never modified. The record store
applies the returned record atomically under its per-record lock.
"""

from __future__ import annotations

import dataclasses
import logging
import random
from typing import Optional

from expertdraw.directory.roster import ExpertRepository
from expertdraw.draw.sampler import draw, make_rng
from expertdraw.errors import EntryNotFound, InvalidReason, NoReplacementAvailable
from expertdraw.models.selection import (
    AllocationEntry,
    AuditEntry,
    RecordStatus,
    SelectionRecord,
)
from expertdraw.policy.resolver import DrawPolicy

logger = logging.getLogger(__name__)


class ReplacementEngine:
    """Replaces one allocated expert with a fresh random draw.

    Usage:
        engine = ReplacementEngine(policy, roster)
        amended = engine.replace(record, "410402197001151234", "conflict")
    """

    def __init__(self, policy: DrawPolicy, experts: ExpertRepository) -> None:
        self._policy = policy
        self._experts = experts

    def replace(
        self,
        record: SelectionRecord,
        expert_id: str,
        reason: str,
        seed: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> SelectionRecord:
        """Return a copy of ``record`` with ``expert_id`` replaced.

        Raises:
            InvalidReason: reason is blank or too long.
            EntryNotFound: ``expert_id`` is not allocated in the record.
            NoReplacementAvailable: every eligible expert of the
                category is already in the record.
        """
        reason = self._validate_reason(reason)

        entry = record.entry_for(expert_id)
        if entry is None:
            raise EntryNotFound(record.record_id, expert_id)

        allocated = record.expert_ids()
        pool = [
            e for e in self._experts.list_eligible(entry.category_id)
            if e.category_id == entry.category_id
            and e.is_eligible()
            and e.expert_id not in allocated
        ]
        if not pool:
            raise NoReplacementAvailable(entry.category_id, entry.category_name)

        rng = rng or make_rng(seed)
        new_expert = draw(pool, 1, rng)[0]
        logger.debug(
            "Replacement for record %s drawn from %d candidates in category %s",
            record.record_id, len(pool), entry.category_id,
        )

        replaced_name = self._expert_name(expert_id)
        new_entry = AllocationEntry(
            expert_id=new_expert.expert_id,
            category_id=entry.category_id,
            category_name=entry.category_name,
        )
        entries = [
            new_entry if e.expert_id == expert_id else e
            for e in record.entries
        ]
        log = list(record.log)
        log.append(AuditEntry.replacement(
            replaced_expert_name=replaced_name,
            new_expert_name=new_expert.name,
            reason=reason,
        ))

        return dataclasses.replace(
            record,
            entries=entries,
            log=log,
            status=RecordStatus.AMENDED,
        )

    def _validate_reason(self, reason: str) -> str:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise InvalidReason("A replacement reason is required")
        max_len = self._policy.max_reason_length()
        if len(cleaned) > max_len:
            raise InvalidReason(
                f"Replacement reason exceeds {max_len} characters"
            )
        return cleaned

    def _expert_name(self, expert_id: str) -> str:
        """Display name of a replaced expert, or the bare id if removed."""
        expert = self._experts.get(expert_id)
        return expert.name if expert else expert_id
