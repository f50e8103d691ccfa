"""
Core Ledger Models for EcoBudget

These models define the strict schemas for the ledger state:
1. Transactions (income, expense, savings transfers)
2. Category budget capsules
3. Savings goals and the UserStats aggregate
4. Recurring transaction rules

DESIGN DECISION: Money is always Decimal. Pydantic v2 rejects NaN and
Infinity for Decimal fields, so malformed amounts never reach the aggregates.
"""

import datetime
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


ZERO = Decimal("0")

NOTE_MAX_LENGTH = 500
RECURRING_NOTE_PREFIX = "(Recurring)"
# a rule note must still fit once "(Recurring) " is put in front of it
RULE_NOTE_MAX_LENGTH = NOTE_MAX_LENGTH - len(RECURRING_NOTE_PREFIX) - 1


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Transaction kinds.

    Savings transfers leave the balance and move into the parallel
    savings ledger (total savings and the matching goal).
    """
    EXPENSE = "expense"
    INCOME = "income"
    SAVINGS = "savings"


class RecurrenceInterval(str, Enum):
    """How often a recurring rule materializes a transaction."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Currency(str, Enum):
    """Supported display currencies (stored as a preference only)."""
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    JPY = "JPY"
    INR = "INR"
    MYR = "MYR"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionInput(BaseModel):
    """
    Data needed to record a transaction.

    This is what forms and recurring rules hand to the ledger.
    The ledger assigns the id.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive amount; the type decides the sign"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name (or savings goal name for savings)"
    )
    date: datetime.date = Field(
        ...,
        description="Calendar date of the transaction (no time)"
    )
    icon: str = Field(
        default="receipt",
        max_length=50,
    )
    note: Optional[str] = Field(
        default=None,
        max_length=NOTE_MAX_LENGTH,
    )


class Transaction(TransactionInput):
    """
    A transaction owned by the ledger.

    Frozen: once its effects are applied it only changes through an
    explicit edit (revert + reapply).
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)

    def to_input(self) -> TransactionInput:
        """Strip the identity, e.g. to re-add a deleted transaction."""
        return TransactionInput.model_validate(self.model_dump(exclude={"id"}))


# =============================================================================
# CAPSULES
# =============================================================================

class CapsuleInput(BaseModel):
    """A new category budget."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    total: Decimal = Field(
        ...,
        gt=0,
        description="Budget limit for the category"
    )
    spent: Decimal = Field(default=ZERO, ge=0)
    icon: str = Field(default="category", max_length=50)


class Capsule(CapsuleInput):
    """
    A named spending-limit bucket.

    `spent` only moves as a side effect of expense transactions whose
    category matches the capsule name.
    """
    id: UUID = Field(default_factory=uuid4)

    @property
    def remaining(self) -> Decimal:
        return self.total - self.spent

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.total


# =============================================================================
# STATS & GOALS
# =============================================================================

class SavingsGoal(BaseModel):
    """A savings target, keyed by its unique name."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    current: Decimal = Field(default=ZERO, ge=0)
    target: Decimal = Field(..., gt=0)

    @property
    def progress(self) -> float:
        """Fraction of the target reached, capped at 1."""
        return min(1.0, float(self.current / self.target))


class UserStats(BaseModel):
    """
    Aggregate derived from the transaction history.

    Maintained incrementally by the ledger. Only `streak_days` is
    recomputed from scratch, and `level`/`level_title` follow `xp`.
    """

    current_balance: Decimal = ZERO
    monthly_expenses: Decimal = ZERO
    total_savings: Decimal = ZERO
    savings_goals: list[SavingsGoal] = Field(default_factory=list)
    streak_days: int = Field(default=0, ge=0)
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    level_title: str = "Novice"

    def get_goal(self, name: str) -> Optional[SavingsGoal]:
        for goal in self.savings_goals:
            if goal.name == name:
                return goal
        return None


# =============================================================================
# RECURRING RULES
# =============================================================================

class RecurringTransactionInput(BaseModel):
    """A template that periodically materializes transactions."""
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    amount: Decimal = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(default="autorenew", max_length=50)
    note: Optional[str] = Field(default=None, max_length=RULE_NOTE_MAX_LENGTH)
    interval: RecurrenceInterval
    start_date: date


class RecurringTransaction(RecurringTransactionInput):
    """
    A stored recurring rule.

    `next_date` only ever moves forward; nothing else on the rule changes
    after creation.
    """
    id: UUID = Field(default_factory=uuid4)
    # stored rules may carry notes up to the transaction limit
    note: Optional[str] = Field(default=None, max_length=NOTE_MAX_LENGTH)
    next_date: date

    @field_validator("next_date")
    @classmethod
    def not_before_start(cls, v: date, info) -> date:
        start = info.data.get("start_date")
        if start is not None and v < start:
            raise ValueError("next_date cannot be before start_date")
        return v

    @classmethod
    def from_input(cls, data: RecurringTransactionInput) -> "RecurringTransaction":
        return cls(**data.model_dump(), next_date=data.start_date)
