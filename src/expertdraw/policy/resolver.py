"""Draw policy - loads draw_policy.json and exposes every tunable as a
typed method call.

No magic. No defaults. If a value is missing from the config, it fails loud.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


POLICY_FILENAME = "draw_policy.json"


class DrawPolicy:
    """Loads and resolves draw policy.

    Usage:
        policy = DrawPolicy.from_config_dir(Path("config"))
        label = policy.unknown_category_label()
        prefix, digits = policy.project_number_format()
    """

    def __init__(self, params: dict[str, Any]) -> None:
        self._params = params
        self._validate()

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> DrawPolicy:
        """Load from the canonical config directory."""
        return cls(_load_json(config_dir / POLICY_FILENAME))

    def _validate(self) -> None:
        if "version" not in self._params:
            raise ValueError(f"{POLICY_FILENAME} missing version")
        if not str(self.unknown_category_label()).strip():
            raise ValueError("unknown_category_label must not be blank")
        if self.max_count_per_category() < 1:
            raise ValueError("requirements.max_count_per_category must be >= 1")
        if self.max_reason_length() < 1:
            raise ValueError("replacement.max_reason_length must be >= 1")
        _, digits = self.project_number_format()
        if digits < 1:
            raise ValueError("project_number.suffix_digits must be >= 1")

    @property
    def version(self) -> str:
        return str(self._params["version"])

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def unknown_category_label(self) -> str:
        """Name recorded when a category id does not resolve."""
        return self._params["unknown_category_label"]

    def max_count_per_category(self) -> int:
        return int(self._params["requirements"]["max_count_per_category"])

    # ------------------------------------------------------------------
    # Replacement
    # ------------------------------------------------------------------

    def max_reason_length(self) -> int:
        return int(self._params["replacement"]["max_reason_length"])

    # ------------------------------------------------------------------
    # Project numbering
    # ------------------------------------------------------------------

    def project_number_format(self) -> tuple[str, int]:
        """Return (prefix, suffix_digits) for generated project numbers."""
        pn = self._params["project_number"]
        return pn["prefix"], int(pn["suffix_digits"])


def _load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file or raise with clear path."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)
