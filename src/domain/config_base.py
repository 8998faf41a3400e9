"""Shared config-loading utilities for TOML presets."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, TypeVar
import tomllib


@dataclass(frozen=True)
class BasePresetConfig:
    """Minimal metadata shared across all preset configs."""

    name: str
    description: str | None
    file_path: Path

    def as_config_json(self) -> dict[str, Any]:
        raise NotImplementedError


T = TypeVar("T", bound=BasePresetConfig)


def load_preset_configs(
    config_dir: Path,
    parser: Callable[[dict[str, Any], Path], T],
    *,
    duplicate_name_label: str = "preset",
) -> list[T]:
    """Load all TOML files in a directory with duplicate-name validation."""
    if not config_dir.exists():
        raise FileNotFoundError(f"Config directory not found: {config_dir}")
    if not config_dir.is_dir():
        raise NotADirectoryError(f"Config path is not a directory: {config_dir}")

    config_files = sorted(config_dir.glob("*.toml"))
    if not config_files:
        raise ValueError(f"No .toml config files found in: {config_dir}")

    presets: list[T] = []
    for file_path in config_files:
        with file_path.open("rb") as file:
            raw = tomllib.load(file)
        presets.append(parser(raw, file_path))

    names = [preset.name for preset in presets]
    if len(names) != len(set(names)):
        raise ValueError(f"Duplicate {duplicate_name_label} preset names found in {config_dir}: {names}")

    return presets


def parse_system_section(raw: dict[str, Any], file_path: Path) -> tuple[str, str | None]:
    """Read the required [system] name and optional description."""
    system_raw = raw.get("system", {})

    name = str(system_raw.get("name", "")).strip()
    if not name:
        raise ValueError(f"{file_path}: [system].name is required")

    description_value = system_raw.get("description")
    description = None if description_value is None else str(description_value)
    return name, description


def find_preset(presets: list[T], name: str) -> T:
    """Return the preset with the given name."""
    for preset in presets:
        if preset.name == name:
            return preset
    raise ValueError(f"Unknown preset '{name}'. Available: {[preset.name for preset in presets]}")


__all__ = ["BasePresetConfig", "find_preset", "load_preset_configs", "parse_system_section"]
