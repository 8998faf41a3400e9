"""Killer-pool game rules and presets."""

from domain.killer_pool.rules import CardType, GameAction, HandicapAction, initial_lives, split_prize_pool

__all__ = ["CardType", "GameAction", "HandicapAction", "initial_lives", "split_prize_pool"]
