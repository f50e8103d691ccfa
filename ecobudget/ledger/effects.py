"""
Transaction effects and streak computation.

`apply_effect` is the single place that decides how a transaction moves the
aggregates. Everything else (add, edit, delete, recurring replay) goes
through it with sign +1 or -1, so reverting an effect is always exact.
"""

from datetime import date, timedelta
from typing import Iterable, Literal, Optional

from ecobudget.ledger.capsules import apply_capsule_effect
from ecobudget.models.ledger import (
    ZERO,
    Capsule,
    Transaction,
    TransactionInput,
    TransactionType,
    UserStats,
)


Sign = Literal[1, -1]


def apply_effect(
    tx: TransactionInput,
    stats: UserStats,
    capsules: list[Capsule],
    sign: Sign,
) -> tuple[UserStats, list[Capsule]]:
    """
    Apply (sign=1) or revert (sign=-1) a transaction.

    Pure: returns new stats and capsules, never mutates the inputs.

    - income: balance += amount
    - expense: balance -= amount, monthly expenses += amount, matching
      capsules spent += amount (clamped at 0)
    - savings: balance -= amount, total savings += amount, the goal named
      like the category gets current += amount (clamped at 0)
    """
    if sign not in (1, -1):
        raise ValueError(f"sign must be 1 or -1, got {sign!r}")

    amount = tx.amount * sign
    balance = stats.current_balance
    monthly = stats.monthly_expenses
    savings = stats.total_savings
    goals = list(stats.savings_goals)

    if tx.type == TransactionType.INCOME:
        balance += amount
    elif tx.type == TransactionType.EXPENSE:
        balance -= amount
        monthly += amount
    elif tx.type == TransactionType.SAVINGS:
        balance -= amount
        savings += amount
        goals = [
            g.model_copy(update={"current": max(ZERO, g.current + amount)})
            if g.name == tx.category else g
            for g in goals
        ]

    new_stats = stats.model_copy(update={
        "current_balance": balance,
        "monthly_expenses": monthly,
        "total_savings": savings,
        "savings_goals": goals,
    })
    return new_stats, apply_capsule_effect(capsules, tx, sign)


def calculate_streak(
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
) -> int:
    """
    Count consecutive days with at least one transaction.

    The streak must end today or yesterday, otherwise it is broken (0).
    Counting walks backwards from the most recent date and stops at the
    first gap larger than one day.
    """
    today = today or date.today()
    unique_dates = sorted({t.date for t in transactions}, reverse=True)
    if not unique_dates:
        return 0

    yesterday = today - timedelta(days=1)
    if unique_dates[0] not in (today, yesterday):
        return 0

    streak = 1
    current = unique_dates[0]
    for previous in unique_dates[1:]:
        if (current - previous).days == 1:
            streak += 1
            current = previous
        else:
            break
    return streak

