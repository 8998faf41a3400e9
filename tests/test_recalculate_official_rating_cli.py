"""Tests for the recalculate_official_rating command-line options."""

from __future__ import annotations

import importlib.util
from pathlib import Path

from typer.testing import CliRunner

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "recalculate_official_rating.py"


def _load_app():
    spec = importlib.util.spec_from_file_location("recalculate_official_rating", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module.app


def test_requires_a_rating_id_or_all() -> None:
    result = CliRunner().invoke(_load_app(), ["--dry-run"])

    assert result.exit_code == 2
    assert "Pass a rating id or --all" in result.output


def test_rejects_rating_id_together_with_all() -> None:
    result = CliRunner().invoke(_load_app(), ["5", "--all", "--dry-run"])

    assert result.exit_code == 2
    assert "not both" in result.output


def test_rejects_non_positive_rating_id() -> None:
    result = CliRunner().invoke(_load_app(), ["0", "--dry-run"])

    assert result.exit_code == 2
    assert "greater than 0" in result.output
