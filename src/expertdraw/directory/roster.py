"""Expert roster and category directory - the read side of every draw.

The roster is the source of truth for who can be drawn. The draw
engines never mutate it; they only ask for a category's pool and look
up display names. Any object satisfying ExpertRepository and
CategoryLookup can stand in for these in-memory implementations (a
database-backed repository, a remote directory client).

Invariants enforced on registration:
- Expert ids are non-blank and unique (re-registering replaces).
- Category names are non-blank and unique across categories.
- A category still referenced by an expert cannot be removed.
"""

from __future__ import annotations

import dataclasses
import threading
from typing import Optional, Protocol

from expertdraw.models.expert import Category, Expert


class ExpertRepository(Protocol):
    """Read interface consumed by the draw engines."""

    def list_eligible(self, category_id: str) -> list[Expert]:
        """In-service experts currently belonging to ``category_id``."""
        ...

    def get(self, expert_id: str) -> Optional[Expert]:
        ...


class CategoryLookup(Protocol):
    def resolve(self, category_id: str) -> Optional[str]:
        """Display name for ``category_id``, or None if unknown."""
        ...


class ExpertRoster:
    """In-memory registry of experts.

    Thread-safety: registration and reads are guarded by an internal
    lock, and reads return fresh lists, so draws running in parallel
    see a consistent snapshot per call.
    """

    def __init__(self) -> None:
        self._experts: dict[str, Expert] = {}
        self._lock = threading.Lock()

    def register(self, expert: Expert) -> None:
        """Register a new expert or replace an existing one.

        Raises ValueError if expert_id or category_id is blank.
        """
        canonical_id = expert.expert_id.strip()
        if not canonical_id:
            raise ValueError("Cannot register expert with blank ID")
        if not expert.category_id.strip():
            raise ValueError(f"Expert {canonical_id} has no category")
        expert = dataclasses.replace(expert, expert_id=canonical_id)
        with self._lock:
            self._experts[canonical_id] = expert

    def remove(self, expert_id: str) -> None:
        with self._lock:
            self._experts.pop(expert_id.strip(), None)

    def get(self, expert_id: str) -> Optional[Expert]:
        with self._lock:
            return self._experts.get(expert_id.strip())

    def all_experts(self) -> list[Expert]:
        with self._lock:
            return list(self._experts.values())

    def list_eligible(self, category_id: str) -> list[Expert]:
        """Return in-service experts of one category, in registration order."""
        with self._lock:
            return [
                e for e in self._experts.values()
                if e.category_id == category_id and e.is_eligible()
            ]

    def references_category(self, category_id: str) -> bool:
        with self._lock:
            return any(e.category_id == category_id for e in self._experts.values())

    @property
    def count(self) -> int:
        return len(self._experts)

    @property
    def active_count(self) -> int:
        with self._lock:
            return sum(1 for e in self._experts.values() if e.is_eligible())


class CategoryDirectory:
    """Maps category ids to display names."""

    def __init__(self, roster: Optional[ExpertRoster] = None) -> None:
        self._categories: dict[str, Category] = {}
        self._roster = roster
        self._lock = threading.Lock()

    def add(self, category: Category) -> None:
        """Add or rename a category.

        Raises ValueError if the id or name is blank, or if the name is
        already used by a different category.
        """
        cid = category.category_id.strip()
        name = category.name.strip()
        if not cid:
            raise ValueError("Cannot add category with blank ID")
        if not name:
            raise ValueError(f"Category {cid} has a blank name")
        with self._lock:
            for existing in self._categories.values():
                if existing.name == name and existing.category_id != cid:
                    raise ValueError(f"Category name already in use: {name}")
            self._categories[cid] = Category(category_id=cid, name=name)

    def remove(self, category_id: str) -> None:
        """Remove a category. Refused while experts still reference it."""
        if self._roster is not None and self._roster.references_category(category_id):
            raise ValueError(
                f"Cannot remove category {category_id}: experts still reference it"
            )
        with self._lock:
            self._categories.pop(category_id, None)

    def resolve(self, category_id: str) -> Optional[str]:
        with self._lock:
            category = self._categories.get(category_id)
        return category.name if category else None

    def all_categories(self) -> list[Category]:
        with self._lock:
            return list(self._categories.values())

    @property
    def count(self) -> int:
        return len(self._categories)
