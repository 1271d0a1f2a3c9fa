"""Selection engine - fair random allocation of experts to a project.

Given a batch of per-category requirements, draws the requested number
of distinct experts from each category's eligible pool:
- In-service experts of the category only.
- Experts in the requirement's avoidance set are excluded.
- Experts already drawn earlier in the same batch are excluded, so the
  whole batch is duplicate-free even if the repository misreports
  category membership.

All-or-nothing: if any category is under-supplied the whole batch fails
with InsufficientPool and nothing is returned. Callers persist the
outcome only after allocate() returns, so a failed or cancelled draw
never leaves partial entries behind.

Pure computation: no side effects. The service layer handles record
creation, persistence and operator audit delivery.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional, Sequence

from expertdraw.directory.roster import CategoryLookup, ExpertRepository
from expertdraw.draw.sampler import draw, make_rng
from expertdraw.errors import InsufficientPool, InvalidRequirement
from expertdraw.models.expert import Expert
from expertdraw.models.selection import (
    AllocationEntry,
    AuditEntry,
    SelectionRequirement,
)
from expertdraw.policy.resolver import DrawPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationOutcome:
    """Entries and their matching INITIAL audit entries, in batch order."""
    entries: list[AllocationEntry]
    log: list[AuditEntry]

    @property
    def expert_ids(self) -> list[str]:
        return [e.expert_id for e in self.entries]


class SelectionEngine:
    """Draws experts for a batch of category requirements.

    Usage:
        engine = SelectionEngine(policy, roster, categories)
        outcome = engine.allocate(requirements, seed="beacon:12345")
    """

    def __init__(
        self,
        policy: DrawPolicy,
        experts: ExpertRepository,
        categories: CategoryLookup,
    ) -> None:
        self._policy = policy
        self._experts = experts
        self._categories = categories

    def allocate(
        self,
        requirements: Sequence[SelectionRequirement],
        seed: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> AllocationOutcome:
        """Draw experts for every requirement, in the order given.

        Args:
            requirements: One entry per category.
            seed: Randomness seed for a reproducible draw. Ignored if
                  ``rng`` is supplied.
            rng: A generator owned exclusively by this call.

        Raises:
            InvalidRequirement: empty batch, bad count, or a category
                listed twice.
            InsufficientPool: a category has fewer eligible experts than
                required. Nothing is allocated for any category.
        """
        self._validate(requirements)
        rng = rng or make_rng(seed)

        entries: list[AllocationEntry] = []
        log: list[AuditEntry] = []
        drawn_ids: set[str] = set()

        for req in requirements:
            category_name = self._category_name(req.category_id)
            pool = self._eligible_pool(req, exclude=drawn_ids)

            if len(pool) < req.count:
                logger.debug(
                    "Category %s under-supplied: %d eligible, %d required",
                    req.category_id, len(pool), req.count,
                )
                raise InsufficientPool(
                    category_id=req.category_id,
                    category_name=category_name,
                    available=len(pool),
                    required=req.count,
                )

            for expert in draw(pool, req.count, rng):
                drawn_ids.add(expert.expert_id)
                entries.append(AllocationEntry(
                    expert_id=expert.expert_id,
                    category_id=req.category_id,
                    category_name=category_name,
                ))
                log.append(AuditEntry.initial(category_name, expert.name))

            logger.debug(
                "Drew %d of %d eligible from category %s",
                req.count, len(pool), req.category_id,
            )

        return AllocationOutcome(entries=entries, log=log)

    def _validate(self, requirements: Sequence[SelectionRequirement]) -> None:
        if not requirements:
            raise InvalidRequirement("At least one category requirement is needed")

        max_count = self._policy.max_count_per_category()
        seen: set[str] = set()
        for req in requirements:
            if not req.category_id or not req.category_id.strip():
                raise InvalidRequirement("Requirement has a blank category id")
            if req.category_id in seen:
                raise InvalidRequirement(
                    f"Category {req.category_id} listed more than once"
                )
            seen.add(req.category_id)
            if isinstance(req.count, bool) or not isinstance(req.count, int):
                raise InvalidRequirement(
                    f"Count for category {req.category_id} must be an integer"
                )
            if req.count < 1:
                raise InvalidRequirement(
                    f"Count for category {req.category_id} must be >= 1, got {req.count}"
                )
            if req.count > max_count:
                raise InvalidRequirement(
                    f"Count for category {req.category_id} exceeds maximum "
                    f"{max_count}, got {req.count}"
                )

    def _category_name(self, category_id: str) -> str:
        name = self._categories.resolve(category_id)
        if name is None:
            return self._policy.unknown_category_label()
        return name

    def _eligible_pool(
        self,
        req: SelectionRequirement,
        exclude: set[str],
    ) -> list[Expert]:
        # Roster ids are stored stripped, so avoidance keys are compared the same way.
        avoid = {key.strip() for key in req.avoid_expert_ids}
        return [
            e for e in self._experts.list_eligible(req.category_id)
            if e.category_id == req.category_id
            and e.is_eligible()
            and e.expert_id not in avoid
            and e.expert_id not in exclude
        ]
