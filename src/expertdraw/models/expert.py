"""Expert and category models - the read-only inputs of every draw.

Experts are owned by an external management workflow. The draw core
only reads them: it filters on category membership and in-service
status, and snapshots the display name into audit entries.

Invariants (maintained by the owner of the data, relied upon here):
- The identity key (national ID) is globally unique.
- An expert belongs to exactly one category at a time.
- A category cannot be deleted while experts still reference it.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Category:
    """An expert category: unique id plus unique display name."""
    category_id: str
    name: str


@dataclass(frozen=True)
class Expert:
    """A single expert in the repository.

    Only ``expert_id``, ``category_id`` and ``in_service`` influence
    selection. Everything else is display data, opaque to the engines.
    """
    expert_id: str              # National ID, immutable
    name: str
    category_id: str
    in_service: bool = True
    work_unit: str = ""
    department: str = ""
    professional_title: str = ""
    discipline: str = ""
    contact_info: str = ""

    def is_eligible(self) -> bool:
        """Only in-service experts may be drawn."""
        return self.in_service
