"""
Ledger Engine

Owns the transaction history, the UserStats aggregate and the capsules.

DESIGN DECISION: Every mutation computes a complete new snapshot and swaps
it in at the end (whole-snapshot replace). A half-applied mutation is never
visible, and the background unlock ticker can never observe one.

After each swap the engine calls its `on_mutation` hook synchronously and
publishes a LEDGER_CHANGED event, so callers see the consequences (challenge
completions, persistence) before the mutation method returns.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from ecobudget.events import LEDGER_CHANGED, EventBus
from ecobudget.ledger import capsules as capsule_ops
from ecobudget.ledger.effects import apply_effect, calculate_streak
from ecobudget.ledger.recurring import RecurringResult
from ecobudget.models.ledger import (
    ZERO,
    Capsule,
    CapsuleInput,
    SavingsGoal,
    Transaction,
    TransactionInput,
    TransactionType,
    UserStats,
)


SLICE_STATS = "stats"
SLICE_CAPSULES = "capsules"
SLICE_TRANSACTIONS = "transactions"


@dataclass(frozen=True)
class LedgerChange:
    """What a mutation touched."""

    reason: str
    slices: frozenset[str]
    entity_id: Optional[str] = None
    details: dict = field(default_factory=dict)

    @property
    def affects_history(self) -> bool:
        return SLICE_TRANSACTIONS in self.slices or SLICE_STATS in self.slices


class LedgerEngine:
    """
    Transaction ledger with incrementally maintained aggregates.

    Transactions are kept most-recent-first; list order is the canonical
    recency order used by exports and notifications.
    """

    def __init__(
        self,
        transactions: Optional[list[Transaction]] = None,
        stats: Optional[UserStats] = None,
        capsules: Optional[list[Capsule]] = None,
        today: Callable[[], date] = date.today,
        on_mutation: Optional[Callable[[LedgerChange], None]] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self._transactions: list[Transaction] = list(transactions or [])
        self._stats: UserStats = stats or UserStats()
        self._capsules: list[Capsule] = list(capsules or [])
        self._today = today
        self._on_mutation = on_mutation
        self._event_bus = event_bus

    # ------------------------------------------------------------------
    # Read access (copies, never the live lists)
    # ------------------------------------------------------------------

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    @property
    def stats(self) -> UserStats:
        return self._stats

    @property
    def capsules(self) -> list[Capsule]:
        return list(self._capsules)

    def get_transaction(self, tx_id: UUID) -> Optional[Transaction]:
        return next((t for t in self._transactions if t.id == tx_id), None)

    def get_capsule(self, capsule_id: UUID) -> Optional[Capsule]:
        return next((c for c in self._capsules if c.id == capsule_id), None)

    # ------------------------------------------------------------------
    # Snapshot swap
    # ------------------------------------------------------------------

    def _commit(
        self,
        reason: str,
        transactions: Optional[list[Transaction]] = None,
        stats: Optional[UserStats] = None,
        capsules: Optional[list[Capsule]] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict] = None,
        notify: bool = True,
    ) -> LedgerChange:
        slices = set()
        new_stats = stats if stats is not None else self._stats

        if transactions is not None:
            slices.add(SLICE_TRANSACTIONS)
            slices.add(SLICE_STATS)
            new_stats = new_stats.model_copy(update={
                "streak_days": calculate_streak(transactions, self._today()),
            })
        if stats is not None:
            slices.add(SLICE_STATS)
        if capsules is not None:
            slices.add(SLICE_CAPSULES)

        # swap everything at once
        if transactions is not None:
            self._transactions = transactions
        self._stats = new_stats
        if capsules is not None:
            self._capsules = capsules

        change = LedgerChange(
            reason=reason,
            slices=frozenset(slices),
            entity_id=entity_id,
            details=details or {},
        )
        if notify:
            if self._on_mutation is not None:
                self._on_mutation(change)
            if self._event_bus is not None:
                self._event_bus.publish(LEDGER_CHANGED, {
                    "reason": change.reason,
                    "slices": sorted(change.slices),
                    "entity_id": change.entity_id,
                })
        return change

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def add_transaction(self, data: TransactionInput) -> Transaction:
        """Record a transaction at the top of the history."""
        tx = Transaction(**data.model_dump())
        stats, capsules = apply_effect(tx, self._stats, self._capsules, 1)
        self._commit(
            "transaction_added",
            transactions=[tx, *self._transactions],
            stats=stats,
            capsules=capsules,
            entity_id=str(tx.id),
        )
        return tx

    def edit_transaction(self, tx_id: UUID, data: TransactionInput) -> Optional[Transaction]:
        """
        Replace a transaction in place.

        The old effect is reverted first and the new one is applied to the
        reverted snapshot, so capsule and goal matching see the post-revert
        state. Unknown ids are a no-op returning None.
        """
        old = self.get_transaction(tx_id)
        if old is None:
            return None

        reverted_stats, reverted_capsules = apply_effect(old, self._stats, self._capsules, -1)
        new_tx = Transaction(**data.model_dump(), id=tx_id)
        stats, capsules = apply_effect(new_tx, reverted_stats, reverted_capsules, 1)

        self._commit(
            "transaction_edited",
            transactions=[new_tx if t.id == tx_id else t for t in self._transactions],
            stats=stats,
            capsules=capsules,
            entity_id=str(tx_id),
        )
        return new_tx

    def delete_transaction(self, tx_id: UUID) -> Optional[Transaction]:
        """Revert and remove a transaction. Unknown ids return None."""
        tx = self.get_transaction(tx_id)
        if tx is None:
            return None

        stats, capsules = apply_effect(tx, self._stats, self._capsules, -1)
        self._commit(
            "transaction_deleted",
            transactions=[t for t in self._transactions if t.id != tx_id],
            stats=stats,
            capsules=capsules,
            entity_id=str(tx_id),
        )
        return tx

    def ingest_recurring(self, result: RecurringResult) -> None:
        """Prepend a materialized batch and adopt its accumulated aggregates."""
        if not result.has_changes:
            return
        self._commit(
            "recurring_materialized",
            transactions=[*result.transactions, *self._transactions],
            stats=result.stats,
            capsules=result.capsules,
            details={"count": len(result.transactions)},
        )

    # ------------------------------------------------------------------
    # Capsules
    # ------------------------------------------------------------------

    def add_capsule(self, data: CapsuleInput) -> Capsule:
        capsules, capsule = capsule_ops.add_capsule(self._capsules, data)
        self._commit("capsule_added", capsules=capsules, entity_id=str(capsule.id))
        return capsule

    def edit_capsule(self, capsule_id: UUID, changes: dict) -> Optional[Capsule]:
        """Partial update; raises pydantic's ValidationError on bad values."""
        capsules, updated = capsule_ops.edit_capsule(self._capsules, capsule_id, changes)
        if updated is None:
            return None
        self._commit("capsule_updated", capsules=capsules, entity_id=str(capsule_id))
        return updated

    def delete_capsule(self, capsule_id: UUID) -> Optional[Capsule]:
        capsules, removed = capsule_ops.delete_capsule(self._capsules, capsule_id)
        if removed is None:
            return None
        self._commit("capsule_deleted", capsules=capsules, entity_id=str(capsule_id))
        return removed

    # ------------------------------------------------------------------
    # Savings goals
    # ------------------------------------------------------------------

    def add_savings_goal(self, goal: SavingsGoal) -> Optional[SavingsGoal]:
        """Add a goal. Goal names are unique keys; duplicates return None."""
        if self._stats.get_goal(goal.name) is not None:
            return None
        stats = self._stats.model_copy(update={
            "savings_goals": [*self._stats.savings_goals, goal],
        })
        self._commit("goal_added", stats=stats, entity_id=goal.name)
        return goal

    def update_savings_goal(self, name: str, amount: Decimal) -> Optional[SavingsGoal]:
        """
        Add funds to a goal.

        Moves both the goal and total savings; the balance is untouched.
        """
        if not amount.is_finite() or amount <= 0:
            raise ValueError(f"Funding amount must be positive, got {amount}")
        goal = self._stats.get_goal(name)
        if goal is None:
            return None

        funded = goal.model_copy(update={"current": goal.current + amount})
        stats = self._stats.model_copy(update={
            "savings_goals": [funded if g.name == name else g for g in self._stats.savings_goals],
            "total_savings": self._stats.total_savings + amount,
        })
        self._commit("goal_funded", stats=stats, entity_id=name, details={"amount": str(amount)})
        return funded

    def edit_savings_goal(self, old_name: str, goal: SavingsGoal) -> Optional[SavingsGoal]:
        """
        Replace a goal, possibly renaming it.

        Total savings is recomputed from the goals. On rename, savings
        transactions filed under the old name follow the goal.
        """
        if self._stats.get_goal(old_name) is None:
            return None
        if goal.name != old_name and self._stats.get_goal(goal.name) is not None:
            return None

        goals = [goal if g.name == old_name else g for g in self._stats.savings_goals]
        stats = self._stats.model_copy(update={
            "savings_goals": goals,
            "total_savings": sum((g.current for g in goals), ZERO),
        })

        transactions = None
        if goal.name != old_name:
            transactions = [
                t.model_copy(update={"category": goal.name})
                if t.type == TransactionType.SAVINGS and t.category == old_name else t
                for t in self._transactions
            ]

        self._commit(
            "goal_updated",
            transactions=transactions,
            stats=stats,
            entity_id=goal.name,
            details={"old_name": old_name},
        )
        return goal

    def delete_savings_goal(self, name: str) -> Optional[SavingsGoal]:
        goal = self._stats.get_goal(name)
        if goal is None:
            return None
        stats = self._stats.model_copy(update={
            "savings_goals": [g for g in self._stats.savings_goals if g.name != name],
            "total_savings": max(ZERO, self._stats.total_savings - goal.current),
        })
        self._commit("goal_deleted", stats=stats, entity_id=name)
        return goal

    # ------------------------------------------------------------------
    # Progress & lifecycle
    # ------------------------------------------------------------------

    def set_progress(self, xp: int, level: int, level_title: str) -> LedgerChange:
        """
        Store gamification progress on the stats.

        Does not call the mutation hook: XP changes are a consequence of
        a mutation, not a new one.
        """
        stats = self._stats.model_copy(update={
            "xp": xp,
            "level": level,
            "level_title": level_title,
        })
        return self._commit("progress_updated", stats=stats, notify=False)

    def refresh_streak(self) -> int:
        """Recompute the streak against the current date (e.g. after midnight)."""
        streak = calculate_streak(self._transactions, self._today())
        if streak != self._stats.streak_days:
            self._commit(
                "streak_refreshed",
                stats=self._stats.model_copy(update={"streak_days": streak}),
                notify=False,
            )
        return streak

    def reset(self) -> None:
        self._transactions = []
        self._stats = UserStats()
        self._capsules = []
