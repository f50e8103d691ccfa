"""Gamification package: challenges, unlock queue, XP and levels."""

from ecobudget.gamification.catalog import (
    CHALLENGES,
    INITIAL_LOCKED,
    LEVELS,
    PHASES,
    calculate_level_data,
    get_challenge,
    get_level,
    levels_in_phase,
    next_level_xp,
)
from ecobudget.gamification.engine import (
    ClaimResult,
    EvaluationResult,
    GamificationEngine,
    initial_challenge_states,
)
from ecobudget.gamification.ticker import UnlockTicker

__all__ = [
    "CHALLENGES",
    "ClaimResult",
    "EvaluationResult",
    "GamificationEngine",
    "INITIAL_LOCKED",
    "LEVELS",
    "PHASES",
    "UnlockTicker",
    "calculate_level_data",
    "get_challenge",
    "get_level",
    "initial_challenge_states",
    "levels_in_phase",
    "next_level_xp",
]
