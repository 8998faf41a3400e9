"""Load league presets from TOML files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from domain.config_base import BasePresetConfig, load_preset_configs, parse_system_section
from domain.leagues.rating_rules import RatingRule, RatingType, parse_rules

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[3] / "configs" / "leagues"


@dataclass(frozen=True)
class LeagueParameters:
    rating_type: RatingType = RatingType.ELO
    start_rating: int = 1000
    max_players: int = 0
    max_score: int = 7
    invite_days_expire: int = 2


@dataclass(frozen=True)
class LeaguePresetConfig(BasePresetConfig):
    """League creation defaults plus its rating rule tables."""

    parameters: LeagueParameters
    winners_rules: tuple[RatingRule, ...]
    losers_rules: tuple[RatingRule, ...]

    def as_config_json(self) -> dict[str, Any]:
        return {
            "rating_type": self.parameters.rating_type.value,
            "start_rating": self.parameters.start_rating,
            "max_players": self.parameters.max_players,
            "max_score": self.parameters.max_score,
            "invite_days_expire": self.parameters.invite_days_expire,
            "rating_change_for_winners_rule": [rule.as_json() for rule in self.winners_rules],
            "rating_change_for_losers_rule": [rule.as_json() for rule in self.losers_rules],
        }


def load_league_presets(config_dir: Path = DEFAULT_CONFIG_DIR) -> list[LeaguePresetConfig]:
    """Load and validate all league preset TOML files in a directory."""
    return load_preset_configs(
        config_dir,
        _parse_league_preset,
        duplicate_name_label="league",
    )


def _parse_league_preset(raw: dict[str, Any], file_path: Path) -> LeaguePresetConfig:
    name, description = parse_system_section(raw, file_path)
    league_raw = raw.get("league", {})
    rules_raw = raw.get("rules", {})

    rating_type_value = str(league_raw.get("rating_type", RatingType.ELO.value))
    try:
        rating_type = RatingType(rating_type_value)
    except ValueError as exc:
        raise ValueError(f"{file_path}: [league].rating_type must be one of elo, killer_pool") from exc

    parameters = LeagueParameters(
        rating_type=rating_type,
        start_rating=int(league_raw.get("start_rating", 1000)),
        max_players=int(league_raw.get("max_players", 0)),
        max_score=int(league_raw.get("max_score", 7)),
        invite_days_expire=int(league_raw.get("invite_days_expire", 2)),
    )
    _validate_parameters(file_path=file_path, parameters=parameters)

    try:
        winners_rules = tuple(parse_rules(rules_raw.get("winners", [])))
        losers_rules = tuple(parse_rules(rules_raw.get("losers", [])))
    except ValueError as exc:
        raise ValueError(f"{file_path}: [rules] {exc}") from exc

    if rating_type is RatingType.ELO and (not winners_rules or not losers_rules):
        raise ValueError(f"{file_path}: [rules] winners and losers tables are required for elo leagues")

    return LeaguePresetConfig(
        name=name,
        description=description,
        file_path=file_path,
        parameters=parameters,
        winners_rules=winners_rules,
        losers_rules=losers_rules,
    )


def _validate_parameters(*, file_path: Path, parameters: LeagueParameters) -> None:
    if parameters.start_rating < 0:
        raise ValueError(f"{file_path}: [league].start_rating must be >= 0")
    if parameters.max_players < 0:
        raise ValueError(f"{file_path}: [league].max_players must be >= 0")
    if parameters.max_score <= 0:
        raise ValueError(f"{file_path}: [league].max_score must be > 0")
    if parameters.invite_days_expire <= 0:
        raise ValueError(f"{file_path}: [league].invite_days_expire must be > 0")


__all__ = ["DEFAULT_CONFIG_DIR", "LeagueParameters", "LeaguePresetConfig", "load_league_presets"]
