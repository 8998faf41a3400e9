"""Load tournament format presets from TOML files."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from domain.config_base import BasePresetConfig, load_preset_configs, parse_system_section
from domain.tournaments.enums import SeedingMethod, TournamentType

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[3] / "configs" / "tournaments"


@dataclass(frozen=True)
class TournamentFormat:
    tournament_type: TournamentType = TournamentType.SINGLE_ELIMINATION
    seeding_method: SeedingMethod = SeedingMethod.RANDOM
    races_to: int = 7
    has_third_place_match: bool = False
    group_size_min: int | None = None
    group_size_max: int | None = None
    playoff_players_per_group: int | None = None
    olympic_phase_size: int | None = None
    olympic_has_third_place: bool = False
    round_races_to: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class TournamentPresetConfig(BasePresetConfig):
    """Format settings applied to a tournament before seeding."""

    format: TournamentFormat

    def as_config_json(self) -> dict[str, Any]:
        return {
            "tournament_type": self.format.tournament_type.value,
            "seeding_method": self.format.seeding_method.value,
            "races_to": self.format.races_to,
            "has_third_place_match": self.format.has_third_place_match,
            "group_size_min": self.format.group_size_min,
            "group_size_max": self.format.group_size_max,
            "playoff_players_per_group": self.format.playoff_players_per_group,
            "olympic_phase_size": self.format.olympic_phase_size,
            "olympic_has_third_place": self.format.olympic_has_third_place,
            "round_races_to": dict(self.format.round_races_to),
        }


def load_tournament_presets(config_dir: Path = DEFAULT_CONFIG_DIR) -> list[TournamentPresetConfig]:
    """Load and validate all tournament preset TOML files in a directory."""
    return load_preset_configs(
        config_dir,
        _parse_tournament_preset,
        duplicate_name_label="tournament",
    )


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _parse_enum(enum_cls: type, raw_value: Any, *, file_path: Path, field_name: str):
    try:
        return enum_cls(str(raw_value))
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"{file_path}: [tournament].{field_name} must be one of {allowed}") from exc


def _parse_tournament_preset(raw: dict[str, Any], file_path: Path) -> TournamentPresetConfig:
    name, description = parse_system_section(raw, file_path)
    tournament_raw = raw.get("tournament", {})
    round_raw = raw.get("round_races_to", {})

    tournament_format = TournamentFormat(
        tournament_type=_parse_enum(
            TournamentType,
            tournament_raw.get("tournament_type", TournamentType.SINGLE_ELIMINATION.value),
            file_path=file_path,
            field_name="tournament_type",
        ),
        seeding_method=_parse_enum(
            SeedingMethod,
            tournament_raw.get("seeding_method", SeedingMethod.RANDOM.value),
            file_path=file_path,
            field_name="seeding_method",
        ),
        races_to=int(tournament_raw.get("races_to", 7)),
        has_third_place_match=bool(tournament_raw.get("has_third_place_match", False)),
        group_size_min=_optional_int(tournament_raw.get("group_size_min")),
        group_size_max=_optional_int(tournament_raw.get("group_size_max")),
        playoff_players_per_group=_optional_int(tournament_raw.get("playoff_players_per_group")),
        olympic_phase_size=_optional_int(tournament_raw.get("olympic_phase_size")),
        olympic_has_third_place=bool(tournament_raw.get("olympic_has_third_place", False)),
        round_races_to={str(key): int(value) for key, value in round_raw.items()},
    )
    _validate_parameters(file_path=file_path, tournament_format=tournament_format)

    return TournamentPresetConfig(
        name=name,
        description=description,
        file_path=file_path,
        format=tournament_format,
    )


def _validate_parameters(*, file_path: Path, tournament_format: TournamentFormat) -> None:
    if tournament_format.races_to <= 0:
        raise ValueError(f"{file_path}: [tournament].races_to must be > 0")
    for key, value in tournament_format.round_races_to.items():
        if value <= 0:
            raise ValueError(f"{file_path}: [round_races_to].{key} must be > 0")

    size_min = tournament_format.group_size_min
    size_max = tournament_format.group_size_max
    if size_min is not None and size_min < 2:
        raise ValueError(f"{file_path}: [tournament].group_size_min must be >= 2")
    if size_min is not None and size_max is not None and size_min > size_max:
        raise ValueError(f"{file_path}: [tournament].group_size_min must be <= group_size_max")
    if tournament_format.playoff_players_per_group is not None and tournament_format.playoff_players_per_group <= 0:
        raise ValueError(f"{file_path}: [tournament].playoff_players_per_group must be > 0")

    phase = tournament_format.olympic_phase_size
    if phase is not None and (phase < 4 or phase & (phase - 1)):
        raise ValueError(f"{file_path}: [tournament].olympic_phase_size must be a power of two >= 4")


__all__ = [
    "DEFAULT_CONFIG_DIR",
    "TournamentFormat",
    "TournamentPresetConfig",
    "load_tournament_presets",
]
