"""Tests for draw policy loading - proves config fails loud."""

import json

import pytest
from pathlib import Path

from expertdraw.policy.resolver import DrawPolicy


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def _params(**overrides) -> dict:
    params = {
        "version": "test",
        "unknown_category_label": "Unknown",
        "project_number": {"prefix": "PDSU", "suffix_digits": 4},
        "requirements": {"max_count_per_category": 10},
        "replacement": {"max_reason_length": 100},
    }
    params.update(overrides)
    return params


class TestDrawPolicy:
    def test_loads_repository_config(self) -> None:
        policy = DrawPolicy.from_config_dir(CONFIG_DIR)
        assert policy.unknown_category_label() == "Unknown"
        assert policy.project_number_format() == ("PDSU", 4)
        assert policy.max_count_per_category() >= 1
        assert policy.max_reason_length() >= 1

    def test_missing_config_dir(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            DrawPolicy.from_config_dir(tmp_path)

    def test_loads_from_custom_dir(self, tmp_path: Path) -> None:
        (tmp_path / "draw_policy.json").write_text(
            json.dumps(_params(unknown_category_label="N/A")), encoding="utf-8",
        )
        policy = DrawPolicy.from_config_dir(tmp_path)
        assert policy.unknown_category_label() == "N/A"
        assert policy.version == "test"

    def test_missing_version_rejected(self) -> None:
        params = _params()
        del params["version"]
        with pytest.raises(ValueError, match="version"):
            DrawPolicy(params)

    @pytest.mark.parametrize("key", [
        "unknown_category_label", "project_number", "requirements", "replacement",
    ])
    def test_missing_key_fails_loud(self, key: str) -> None:
        params = _params()
        del params[key]
        with pytest.raises(KeyError, match=key):
            DrawPolicy(params)

    def test_blank_unknown_label_rejected(self) -> None:
        with pytest.raises(ValueError, match="unknown_category_label"):
            DrawPolicy(_params(unknown_category_label="  "))

    def test_zero_max_count_rejected(self) -> None:
        with pytest.raises(ValueError, match="max_count_per_category"):
            DrawPolicy(_params(requirements={"max_count_per_category": 0}))

    def test_zero_suffix_digits_rejected(self) -> None:
        with pytest.raises(ValueError, match="suffix_digits"):
            DrawPolicy(_params(project_number={"prefix": "X", "suffix_digits": 0}))
