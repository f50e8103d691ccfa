"""
Data Models Package

This package contains all Pydantic models used by EcoBudget.
All data flowing through the engines must conform to these schemas.
"""

from ecobudget.models.ledger import (
    Capsule,
    CapsuleInput,
    Currency,
    RecurrenceInterval,
    RecurringTransaction,
    RecurringTransactionInput,
    SavingsGoal,
    Transaction,
    TransactionInput,
    TransactionType,
    UserStats,
)
from ecobudget.models.gamification import (
    ChallengeDef,
    ChallengeState,
    ChallengeStatus,
    LevelDef,
)
from ecobudget.models.insights import (
    CategorySpotlight,
    HeatmapDay,
    LevelProgress,
    MonthSummary,
    SixMonthSummary,
    SpendingHeatmap,
)
from ecobudget.models.validation import ValidationIssue, ValidationResult
from ecobudget.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Capsule",
    "CapsuleInput",
    "Currency",
    "RecurrenceInterval",
    "RecurringTransaction",
    "RecurringTransactionInput",
    "SavingsGoal",
    "Transaction",
    "TransactionInput",
    "TransactionType",
    "UserStats",
    # Gamification models
    "ChallengeDef",
    "ChallengeState",
    "ChallengeStatus",
    "LevelDef",
    # Insight models
    "CategorySpotlight",
    "HeatmapDay",
    "LevelProgress",
    "MonthSummary",
    "SixMonthSummary",
    "SpendingHeatmap",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
