"""State store - JSON-based persistence for the expert roster and
category directory.

Experts and categories are maintained by an external management
workflow; this store is the hand-off point the draw service loads them
from. Selection records are not kept here: they live in the
SelectionRecordStore, one file per record.

This is a simple file-based store suitable for single-node deployment.
Production deployments would replace this with a database backend
while keeping the same interface.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from expertdraw.directory.roster import CategoryDirectory, ExpertRoster
from expertdraw.models.expert import Category, Expert


class StateStore:
    """JSON file-based roster and category persistence.

    Usage:
        store = StateStore(Path("data/directory.json"))
        store.save_categories(categories)
        store.save_roster(roster)

        # On startup:
        roster = store.load_roster()
        categories = store.load_categories(roster)
    """

    def __init__(self, storage_path: Path) -> None:
        self._path = storage_path
        self._state: dict[str, Any] = {}
        if storage_path.exists():
            self._load()

    def _load(self) -> None:
        with self._path.open("r", encoding="utf-8") as f:
            self._state = json.load(f)

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(self._state, f, indent=2, sort_keys=True, ensure_ascii=False)

    # ------------------------------------------------------------------
    # Roster persistence
    # ------------------------------------------------------------------

    def save_roster(self, roster: ExpertRoster) -> None:
        """Serialize the expert roster to state."""
        self._state["experts"] = [
            {
                "expert_id": e.expert_id,
                "name": e.name,
                "category_id": e.category_id,
                "in_service": e.in_service,
                "work_unit": e.work_unit,
                "department": e.department,
                "professional_title": e.professional_title,
                "discipline": e.discipline,
                "contact_info": e.contact_info,
            }
            for e in roster.all_experts()
        ]
        self._save()

    def load_roster(self) -> ExpertRoster:
        """Deserialize the expert roster from state."""
        roster = ExpertRoster()
        for data in self._state.get("experts", []):
            roster.register(Expert(
                expert_id=data["expert_id"],
                name=data["name"],
                category_id=data["category_id"],
                in_service=data.get("in_service", True),
                work_unit=data.get("work_unit", ""),
                department=data.get("department", ""),
                professional_title=data.get("professional_title", ""),
                discipline=data.get("discipline", ""),
                contact_info=data.get("contact_info", ""),
            ))
        return roster

    # ------------------------------------------------------------------
    # Category persistence
    # ------------------------------------------------------------------

    def save_categories(self, categories: CategoryDirectory) -> None:
        self._state["categories"] = [
            {"category_id": c.category_id, "name": c.name}
            for c in categories.all_categories()
        ]
        self._save()

    def load_categories(self, roster: ExpertRoster | None = None) -> CategoryDirectory:
        """Deserialize the category directory, guarding removals with ``roster``."""
        directory = CategoryDirectory(roster)
        for data in self._state.get("categories", []):
            directory.add(Category(category_id=data["category_id"], name=data["name"]))
        return directory
