"""
Recurring Transaction Scheduler

Rules are replayed on demand (at load and whenever a rule is added),
never on a timer. Replay is idempotent: each materialized date moves the
rule's next_date past it, so processing twice never duplicates anything.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional
from uuid import UUID

import structlog
from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from ecobudget.ledger.effects import apply_effect
from ecobudget.models.ledger import (
    RECURRING_NOTE_PREFIX,
    Capsule,
    RecurrenceInterval,
    RecurringTransaction,
    RecurringTransactionInput,
    Transaction,
    UserStats,
)


logger = structlog.get_logger("ecobudget.recurring")

_STEPS = {
    RecurrenceInterval.DAILY: relativedelta(days=1),
    RecurrenceInterval.WEEKLY: relativedelta(weeks=1),
    RecurrenceInterval.MONTHLY: relativedelta(months=1),
    RecurrenceInterval.YEARLY: relativedelta(years=1),
}


def next_occurrence(current: date, interval: RecurrenceInterval) -> date:
    """
    Advance by one interval using calendar arithmetic.

    Month and year steps clamp to the last day of shorter months
    (Jan 31 -> Feb 28), as relativedelta does.
    """
    return current + _STEPS[RecurrenceInterval(interval)]


def recurring_note(note: Optional[str]) -> str:
    return f"{RECURRING_NOTE_PREFIX} {note}" if note else RECURRING_NOTE_PREFIX


@dataclass
class RecurringResult:
    """Output of one replay pass."""

    transactions: list[Transaction] = field(default_factory=list)
    stats: Optional[UserStats] = None
    capsules: list[Capsule] = field(default_factory=list)
    rules: list[RecurringTransaction] = field(default_factory=list)
    # rules that materialized at least one instance
    rule_ids: list[str] = field(default_factory=list)
    # rules left untouched because an instance failed validation
    skipped_rule_ids: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.transactions)


def _replay_rule(
    rule: RecurringTransaction,
    stats: UserStats,
    capsules: list[Capsule],
    today: date,
) -> tuple[list[Transaction], UserStats, list[Capsule], date]:
    created = []
    next_date = rule.next_date
    while next_date <= today:
        tx = Transaction(
            type=rule.type,
            amount=rule.amount,
            category=rule.category,
            date=next_date,
            icon=rule.icon,
            note=recurring_note(rule.note),
        )
        created.append(tx)
        stats, capsules = apply_effect(tx, stats, capsules, 1)
        next_date = next_occurrence(next_date, rule.interval)
    return created, stats, capsules, next_date


def process_recurring(
    rules: list[RecurringTransaction],
    stats: UserStats,
    capsules: list[Capsule],
    today: Optional[date] = None,
) -> RecurringResult:
    """
    Materialize every due instance up to and including today.

    Effects accumulate across rules in rule order, and chronologically
    within a rule. The returned transactions are newest-first, ready to be
    prepended to the ledger.

    A rule whose instances cannot be built is skipped as a whole: its
    next_date stays put and nothing it would have produced is applied.
    """
    today = today or date.today()
    created: list[Transaction] = []
    rule_ids: list[str] = []
    skipped: list[str] = []
    updated_rules: list[RecurringTransaction] = []

    for rule in rules:
        try:
            rule_txs, rule_stats, rule_capsules, next_date = _replay_rule(rule, stats, capsules, today)
        except ValidationError as e:
            logger.warning("recurring_rule_skipped", rule_id=str(rule.id), error=str(e))
            skipped.append(str(rule.id))
            updated_rules.append(rule)
            continue

        created.extend(rule_txs)
        stats, capsules = rule_stats, rule_capsules
        if next_date != rule.next_date:
            rule_ids.append(str(rule.id))
            rule = rule.model_copy(update={"next_date": next_date})
        updated_rules.append(rule)

    created.reverse()
    return RecurringResult(
        transactions=created,
        stats=stats,
        capsules=list(capsules),
        rules=updated_rules,
        rule_ids=rule_ids,
        skipped_rule_ids=skipped,
    )


class RecurringScheduler:
    """Owns the recurrence rules."""

    def __init__(self, rules: Optional[list[RecurringTransaction]] = None):
        self._rules: list[RecurringTransaction] = list(rules or [])

    @property
    def rules(self) -> list[RecurringTransaction]:
        return list(self._rules)

    def add_rule(self, data: RecurringTransactionInput) -> RecurringTransaction:
        rule = RecurringTransaction.from_input(data)
        self._rules = [*self._rules, rule]
        return rule

    def delete_rule(self, rule_id: UUID) -> Optional[RecurringTransaction]:
        removed = next((r for r in self._rules if r.id == rule_id), None)
        if removed is not None:
            self._rules = [r for r in self._rules if r.id != rule_id]
        return removed

    def process(
        self,
        stats: UserStats,
        capsules: list[Capsule],
        today: Optional[date] = None,
    ) -> RecurringResult:
        """Replay due instances and adopt the advanced rules."""
        result = process_recurring(self._rules, stats, capsules, today)
        self._rules = result.rules
        return result

    def reset(self) -> None:
        self._rules = []
