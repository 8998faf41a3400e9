"""Tests for official-rating tournament records and derived totals."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import pytest

from domain.official_ratings.records import (
    Division,
    TournamentResult,
    add_tournament,
    division_for_position,
    find_record,
    integrity_issues,
    recalculate_from_records,
    remove_tournament,
    win_rate,
)


@dataclass
class Holder:
    rating_points: int = 100
    tournaments_played: int = 0
    tournaments_won: int = 0
    last_tournament_at: datetime | None = None
    tournament_records: list[dict[str, Any]] = field(default_factory=list)
    total_prize_amount: float = 0.0
    total_bonus_amount: float = 0.0
    total_achievement_amount: float = 0.0
    total_killer_pool_prize_amount: float = 0.0


@pytest.mark.parametrize(
    ("position", "division"),
    [(1, Division.ELITE), (8, Division.ELITE), (9, Division.S), (24, Division.A), (64, Division.B), (65, Division.C)],
)
def test_division_for_position(position: int, division: Division) -> None:
    assert division_for_position(position) is division


def test_win_rate_rounds_to_two_places() -> None:
    assert win_rate(1, 3) == pytest.approx(33.33)
    assert win_rate(0, 0) == 0.0


def test_add_tournament_accumulates_totals() -> None:
    holder = Holder()
    add_tournament(holder, TournamentResult(1, 30, date(2024, 2, 1), won=True, prize_amount=500.0))
    add_tournament(holder, TournamentResult(2, 10, date(2024, 3, 1), bonus_amount=50.0))

    assert holder.rating_points == 140
    assert holder.tournaments_played == 2
    assert holder.tournaments_won == 1
    assert holder.total_prize_amount == pytest.approx(500.0)
    assert holder.total_bonus_amount == pytest.approx(50.0)
    assert holder.last_tournament_at == datetime(2024, 3, 1)
    assert find_record(holder, 1)["won"] is True


def test_add_tournament_replaces_existing_record_by_difference() -> None:
    holder = Holder()
    add_tournament(holder, TournamentResult(1, 30, date(2024, 2, 1), won=True, prize_amount=500.0))
    add_tournament(holder, TournamentResult(1, 12, date(2024, 2, 1), won=False, prize_amount=100.0))

    assert holder.rating_points == 112
    assert holder.tournaments_played == 1
    assert holder.tournaments_won == 0
    assert holder.total_prize_amount == pytest.approx(100.0)
    assert "updated_at" in find_record(holder, 1)


def test_remove_tournament_reverses_totals() -> None:
    holder = Holder()
    add_tournament(holder, TournamentResult(1, 30, date(2024, 2, 1), won=True))
    add_tournament(holder, TournamentResult(2, 10, date(2024, 3, 1)))

    assert remove_tournament(holder, 2) is True
    assert remove_tournament(holder, 99) is False
    assert holder.rating_points == 130
    assert holder.tournaments_played == 1
    assert holder.last_tournament_at == datetime(2024, 2, 1)


def test_recalculate_and_integrity_check() -> None:
    holder = Holder()
    add_tournament(holder, TournamentResult(1, 30, date(2024, 2, 1), prize_amount=200.0))
    holder.rating_points = 999
    holder.total_prize_amount = 150.0

    issues = integrity_issues(holder, initial_rating=100)
    assert issues["rating_points"]["calculated"] == 130
    assert issues["prize_amount"]["difference"] == pytest.approx(-50.0)

    recalculate_from_records(holder, initial_rating=100)
    assert holder.rating_points == 130
    assert holder.total_prize_amount == pytest.approx(200.0)
    assert integrity_issues(holder, initial_rating=100) == {}
