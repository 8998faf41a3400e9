"""Load killer-pool game presets from TOML files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from domain.config_base import BasePresetConfig, load_preset_configs, parse_system_section

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[3] / "configs" / "killer_pool"


@dataclass(frozen=True)
class KillerPoolParameters:
    entrance_fee: int = 300
    first_place_percent: int = 60
    second_place_percent: int = 20
    grand_final_percent: int = 20
    penalty_fee: int = 50
    allow_rebuy: bool = False
    rebuy_rounds: int | None = None
    lives_per_new_player: int = 0
    enable_penalties: bool = False
    penalty_rounds_threshold: int | None = None


@dataclass(frozen=True)
class KillerPoolPresetConfig(BasePresetConfig):
    """Fee, prize split and rebuy settings for a new killer-pool game."""

    parameters: KillerPoolParameters

    def as_config_json(self) -> dict[str, Any]:
        return {
            "entrance_fee": self.parameters.entrance_fee,
            "first_place_percent": self.parameters.first_place_percent,
            "second_place_percent": self.parameters.second_place_percent,
            "grand_final_percent": self.parameters.grand_final_percent,
            "penalty_fee": self.parameters.penalty_fee,
            "allow_rebuy": self.parameters.allow_rebuy,
            "rebuy_rounds": self.parameters.rebuy_rounds,
            "lives_per_new_player": self.parameters.lives_per_new_player,
            "enable_penalties": self.parameters.enable_penalties,
            "penalty_rounds_threshold": self.parameters.penalty_rounds_threshold,
        }


def load_killer_pool_presets(config_dir: Path = DEFAULT_CONFIG_DIR) -> list[KillerPoolPresetConfig]:
    """Load and validate all killer-pool preset TOML files in a directory."""
    return load_preset_configs(
        config_dir,
        _parse_killer_pool_preset,
        duplicate_name_label="killer_pool",
    )


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _parse_killer_pool_preset(raw: dict[str, Any], file_path: Path) -> KillerPoolPresetConfig:
    name, description = parse_system_section(raw, file_path)
    game_raw = raw.get("killer_pool", {})

    parameters = KillerPoolParameters(
        entrance_fee=int(game_raw.get("entrance_fee", 300)),
        first_place_percent=int(game_raw.get("first_place_percent", 60)),
        second_place_percent=int(game_raw.get("second_place_percent", 20)),
        grand_final_percent=int(game_raw.get("grand_final_percent", 20)),
        penalty_fee=int(game_raw.get("penalty_fee", 50)),
        allow_rebuy=bool(game_raw.get("allow_rebuy", False)),
        rebuy_rounds=_optional_int(game_raw.get("rebuy_rounds")),
        lives_per_new_player=int(game_raw.get("lives_per_new_player", 0)),
        enable_penalties=bool(game_raw.get("enable_penalties", False)),
        penalty_rounds_threshold=_optional_int(game_raw.get("penalty_rounds_threshold")),
    )
    _validate_parameters(file_path=file_path, parameters=parameters)

    return KillerPoolPresetConfig(
        name=name,
        description=description,
        file_path=file_path,
        parameters=parameters,
    )


def _validate_parameters(*, file_path: Path, parameters: KillerPoolParameters) -> None:
    if parameters.entrance_fee < 0:
        raise ValueError(f"{file_path}: [killer_pool].entrance_fee must be >= 0")
    if parameters.penalty_fee < 0:
        raise ValueError(f"{file_path}: [killer_pool].penalty_fee must be >= 0")
    for field_name in ("first_place_percent", "second_place_percent", "grand_final_percent"):
        value = getattr(parameters, field_name)
        if not 0 <= value <= 100:
            raise ValueError(f"{file_path}: [killer_pool].{field_name} must be between 0 and 100")
    percent_total = (
        parameters.first_place_percent + parameters.second_place_percent + parameters.grand_final_percent
    )
    if percent_total != 100:
        raise ValueError(f"{file_path}: [killer_pool] prize percentages must sum to 100 (got {percent_total})")
    if parameters.rebuy_rounds is not None and parameters.rebuy_rounds < 0:
        raise ValueError(f"{file_path}: [killer_pool].rebuy_rounds must be >= 0")
    if parameters.lives_per_new_player < 0:
        raise ValueError(f"{file_path}: [killer_pool].lives_per_new_player must be >= 0")
    if parameters.enable_penalties and not parameters.penalty_rounds_threshold:
        raise ValueError(f"{file_path}: [killer_pool].penalty_rounds_threshold must be > 0 when penalties are enabled")


__all__ = [
    "DEFAULT_CONFIG_DIR",
    "KillerPoolParameters",
    "KillerPoolPresetConfig",
    "load_killer_pool_presets",
]
