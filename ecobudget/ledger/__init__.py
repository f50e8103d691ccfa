"""Ledger package: transaction effects, capsules, recurring rules."""

from ecobudget.ledger.capsules import (
    CapsuleSummary,
    apply_capsule_effect,
    capsule_matches,
    summarize_capsules,
)
from ecobudget.ledger.effects import apply_effect, calculate_streak
from ecobudget.ledger.engine import LedgerChange, LedgerEngine
from ecobudget.ledger.recurring import (
    RecurringResult,
    RecurringScheduler,
    next_occurrence,
    process_recurring,
)

__all__ = [
    "CapsuleSummary",
    "LedgerChange",
    "LedgerEngine",
    "RecurringResult",
    "RecurringScheduler",
    "apply_capsule_effect",
    "apply_effect",
    "calculate_streak",
    "capsule_matches",
    "next_occurrence",
    "process_recurring",
    "summarize_capsules",
]
