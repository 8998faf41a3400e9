"""Per-tournament records and derived totals for official rating players."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Protocol

MONEY_TOLERANCE = 0.01

_MONEY_FIELDS = (
    ("prize_amount", "total_prize_amount"),
    ("bonus_amount", "total_bonus_amount"),
    ("achievement_amount", "total_achievement_amount"),
    ("killer_pool_prize_amount", "total_killer_pool_prize_amount"),
)


class Division(str, Enum):
    ELITE = "Elite"
    S = "S"
    A = "A"
    B = "B"
    C = "C"


def division_for_position(position: int) -> Division:
    if position <= 8:
        return Division.ELITE
    if position <= 16:
        return Division.S
    if position <= 24:
        return Division.A
    if position <= 64:
        return Division.B
    return Division.C


def win_rate(tournaments_won: int, tournaments_played: int) -> float:
    if tournaments_played == 0:
        return 0.0
    return round(tournaments_won / tournaments_played * 100, 2)


class RecordHolder(Protocol):
    """Attributes of a rating player that records are folded into."""

    rating_points: int
    tournaments_played: int
    tournaments_won: int
    last_tournament_at: datetime | None
    tournament_records: list[dict[str, Any]]
    total_prize_amount: float
    total_bonus_amount: float
    total_achievement_amount: float
    total_killer_pool_prize_amount: float


@dataclass(frozen=True)
class TournamentResult:
    """Outcome of one tournament as stored in a player's records."""

    tournament_id: int
    rating_points: int
    tournament_date: date
    won: bool = False
    prize_amount: float = 0.0
    bonus_amount: float = 0.0
    achievement_amount: float = 0.0
    killer_pool_prize_amount: float = 0.0


def find_record(holder: RecordHolder, tournament_id: int) -> dict[str, Any] | None:
    for record in holder.tournament_records or []:
        if record["tournament_id"] == tournament_id:
            return record
    return None


def add_tournament(holder: RecordHolder, result: TournamentResult, *, now: datetime | None = None) -> None:
    """Insert or replace a tournament record and shift totals by the difference."""
    stamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    records = [dict(record) for record in holder.tournament_records or []]
    record = {
        "tournament_id": result.tournament_id,
        "rating_points": result.rating_points,
        "prize_amount": result.prize_amount,
        "bonus_amount": result.bonus_amount,
        "achievement_amount": result.achievement_amount,
        "killer_pool_prize_amount": result.killer_pool_prize_amount,
        "tournament_date": result.tournament_date.strftime("%Y-%m-%d"),
        "won": result.won,
    }

    existing_index = next(
        (index for index, old in enumerate(records) if old["tournament_id"] == result.tournament_id),
        None,
    )
    if existing_index is None:
        old: dict[str, Any] = {}
        record["added_at"] = stamp
        records.append(record)
        holder.tournaments_played += 1
    else:
        old = records[existing_index]
        record["updated_at"] = stamp
        records[existing_index] = record

    holder.rating_points = holder.rating_points - int(old.get("rating_points", 0)) + result.rating_points
    for record_key, total_attr in _MONEY_FIELDS:
        current = float(getattr(holder, total_attr) or 0)
        setattr(holder, total_attr, current - float(old.get(record_key, 0) or 0) + float(record[record_key]))

    was_won = bool(old.get("won", False))
    if result.won and not was_won:
        holder.tournaments_won += 1
    elif not result.won and was_won:
        holder.tournaments_won -= 1

    holder.last_tournament_at = datetime.combine(result.tournament_date, datetime.min.time())
    holder.tournament_records = records


def remove_tournament(holder: RecordHolder, tournament_id: int) -> bool:
    """Strip a record and reverse its totals. Returns False when absent."""
    records = list(holder.tournament_records or [])
    removed = next((record for record in records if record["tournament_id"] == tournament_id), None)
    if removed is None:
        return False
    records = [record for record in records if record is not removed]

    holder.rating_points -= int(removed.get("rating_points", 0))
    for record_key, total_attr in _MONEY_FIELDS:
        setattr(holder, total_attr, float(getattr(holder, total_attr) or 0) - float(removed.get(record_key, 0) or 0))
    holder.tournaments_played -= 1
    if removed.get("won"):
        holder.tournaments_won -= 1

    holder.last_tournament_at = _latest_date(records)
    holder.tournament_records = records
    return True


def recalculate_from_records(holder: RecordHolder, initial_rating: int) -> None:
    """Rebuild every total from initial_rating plus the stored records."""
    records = holder.tournament_records or []
    holder.rating_points = initial_rating + sum(int(record.get("rating_points", 0)) for record in records)
    holder.tournaments_played = len(records)
    holder.tournaments_won = sum(1 for record in records if record.get("won"))
    for record_key, total_attr in _MONEY_FIELDS:
        setattr(holder, total_attr, float(sum(float(record.get(record_key, 0) or 0) for record in records)))
    holder.last_tournament_at = _latest_date(records)


def integrity_issues(holder: RecordHolder, initial_rating: int) -> dict[str, dict[str, float]]:
    """Compare stored totals with the record sums; money fields allow a small tolerance."""
    records = holder.tournament_records or []
    issues: dict[str, dict[str, float]] = {}

    calculated_points = initial_rating + sum(int(record.get("rating_points", 0)) for record in records)
    if calculated_points != holder.rating_points:
        issues["rating_points"] = {
            "current": holder.rating_points,
            "calculated": calculated_points,
            "difference": holder.rating_points - calculated_points,
        }

    for record_key, total_attr in _MONEY_FIELDS[:3]:
        calculated = float(sum(float(record.get(record_key, 0) or 0) for record in records))
        current = float(getattr(holder, total_attr) or 0)
        if abs(calculated - current) > MONEY_TOLERANCE:
            issues[record_key] = {
                "current": current,
                "calculated": calculated,
                "difference": current - calculated,
            }
    return issues


def _latest_date(records: Sequence[dict[str, Any]]) -> datetime | None:
    if not records:
        return None
    latest = max(str(record["tournament_date"]) for record in records)
    return datetime.strptime(latest, "%Y-%m-%d")


__all__ = [
    "Division",
    "MONEY_TOLERANCE",
    "RecordHolder",
    "TournamentResult",
    "add_tournament",
    "division_for_position",
    "find_record",
    "integrity_issues",
    "recalculate_from_records",
    "remove_tournament",
    "win_rate",
]
