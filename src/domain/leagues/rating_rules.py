"""Rule-table rating strategies for league matches and killer-pool games."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class RatingType(str, Enum):
    """How a league turns results into rating changes."""

    ELO = "elo"
    KILLER_POOL = "killer_pool"


@dataclass(frozen=True)
class RatingRule:
    """Rating change applied when the rating gap falls inside [min_delta, max_delta]."""

    min_delta: int
    max_delta: int
    strong: int
    weak: int

    def matches(self, delta: int) -> bool:
        return self.min_delta <= delta <= self.max_delta

    def as_json(self) -> dict[str, Any]:
        return {"range": [self.min_delta, self.max_delta], "strong": self.strong, "weak": self.weak}


@dataclass(frozen=True)
class RatedPlayer:
    """Minimal rating snapshot a strategy works on."""

    rating_id: int
    user_id: int
    rating: int


def parse_rules(raw_rules: Sequence[Mapping[str, Any]]) -> list[RatingRule]:
    """Convert stored JSON rules ({"range": [min, max], "strong": x, "weak": y}) into RatingRule objects."""
    rules: list[RatingRule] = []
    for index, raw in enumerate(raw_rules):
        bounds = raw.get("range")
        if not isinstance(bounds, Sequence) or len(bounds) != 2:
            raise ValueError(f"rule #{index} must define range as [min, max]")
        min_delta, max_delta = int(bounds[0]), int(bounds[1])
        if min_delta > max_delta:
            raise ValueError(f"rule #{index} range min must be <= max")
        rules.append(
            RatingRule(
                min_delta=min_delta,
                max_delta=max_delta,
                strong=int(raw.get("strong", 0)),
                weak=int(raw.get("weak", 0)),
            )
        )
    return rules


def find_rule(rules: Sequence[RatingRule], delta: int) -> RatingRule | None:
    """Return the first rule whose range contains delta."""
    for rule in rules:
        if rule.matches(delta):
            return rule
    return None


@runtime_checkable
class RatingStrategy(Protocol):
    """Contract for league rating strategies."""

    rating_type: RatingType


class EloRatingStrategy:
    """Rule-table Elo: the rating gap selects a rule, favourite status picks strong or weak."""

    rating_type = RatingType.ELO

    def calculate(
        self,
        first: RatedPlayer,
        second: RatedPlayer,
        winner_user_id: int,
        winners_rules: Sequence[RatingRule],
        losers_rules: Sequence[RatingRule],
    ) -> dict[int, int]:
        delta = abs(first.rating - second.rating)
        first_won = winner_user_id == first.user_id
        winner, loser = (first, second) if first_won else (second, first)
        winner_is_stronger = winner.rating >= loser.rating

        winner_rule = find_rule(winners_rules, delta)
        loser_rule = find_rule(losers_rules, delta)
        if winner_rule is None or loser_rule is None:
            raise ValueError(f"No rule matched for delta {delta}")

        winner_delta = winner_rule.strong if winner_is_stronger else winner_rule.weak
        loser_delta = loser_rule.strong if winner_is_stronger else loser_rule.weak

        return {
            winner.rating_id: winner.rating + winner_delta,
            loser.rating_id: loser.rating + loser_delta,
        }


class KillerPoolRatingStrategy:
    """Adds each player's killer-pool rating points to their league rating."""

    rating_type = RatingType.KILLER_POOL

    def calculate(self, ratings: Sequence[RatedPlayer], points_by_user: Mapping[int, int]) -> dict[int, int]:
        result: dict[int, int] = {}
        for rated in ratings:
            points = points_by_user.get(rated.user_id, 0)
            result[rated.rating_id] = rated.rating + points if points else rated.rating
        return result


_STRATEGIES: dict[RatingType, RatingStrategy] = {
    RatingType.ELO: EloRatingStrategy(),
    RatingType.KILLER_POOL: KillerPoolRatingStrategy(),
}


def strategy_for(rating_type: RatingType | str) -> RatingStrategy:
    """Resolve the strategy registered for a rating type."""
    return _STRATEGIES[RatingType(rating_type)]


__all__ = [
    "EloRatingStrategy",
    "KillerPoolRatingStrategy",
    "RatedPlayer",
    "RatingRule",
    "RatingStrategy",
    "RatingType",
    "find_rule",
    "parse_rules",
    "strategy_for",
]
