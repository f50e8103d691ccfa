"""
Main Orchestrator for EcoBudget

This module ties the ledger, the recurring scheduler and the gamification
engine together behind one session object, and defines the end-to-end
flow of every mutation:

    validate -> ledger swap -> challenge evaluation -> XP / level -> persist

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the ledger without passing the input validator
- Every ledger change is followed, synchronously, by a challenge pass
- Every step is audited
- Storage problems degrade the session, they never break it

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import threading
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Union
from uuid import UUID

import structlog
from pydantic import TypeAdapter, ValidationError

from ecobudget.audit import AuditLogger, create_correlation_id, set_log_level
from ecobudget.config import Settings, get_settings
from ecobudget.events import (
    CHALLENGE_COMPLETED,
    CHALLENGES_UNLOCKED,
    DATA_RESET,
    LEVEL_UP,
    EventBus,
)
from ecobudget.export import transactions_to_csv, write_csv
from ecobudget.gamification import GamificationEngine, UnlockTicker, get_challenge, next_level_xp
from ecobudget.gamification.engine import epoch_ms
from ecobudget.ledger.capsules import CapsuleSummary, summarize_capsules
from ecobudget.ledger.engine import (
    SLICE_CAPSULES,
    SLICE_STATS,
    SLICE_TRANSACTIONS,
    LedgerChange,
    LedgerEngine,
)
from ecobudget.ledger.recurring import RecurringScheduler
from ecobudget.models.audit import AuditEventBuilder, AuditEventType
from ecobudget.models.gamification import ChallengeDef, ChallengeState, LevelDef
from ecobudget.models.ledger import (
    Capsule,
    Currency,
    RecurringTransaction,
    SavingsGoal,
    Transaction,
    UserStats,
)
from ecobudget.models.validation import ValidationResult
from ecobudget.queries import InsightsQuery
from ecobudget.services.storage import (
    KeyValueStoreInterface,
    StorageError,
    StorageKey,
    create_store,
)
from ecobudget.validation import InputValidator


logger = structlog.get_logger("ecobudget.session")

SLICE_RECURRING = "recurring"
SLICE_CHALLENGES = "challenges"

_STATS = TypeAdapter(UserStats)
_TRANSACTIONS = TypeAdapter(list[Transaction])
_CAPSULES = TypeAdapter(list[Capsule])
_RECURRING = TypeAdapter(list[RecurringTransaction])
_CHALLENGES = TypeAdapter(dict[str, ChallengeState])
_CURRENCY = TypeAdapter(Currency)
_FLAG = TypeAdapter(bool)

# slices cleared by reset_data; the theme flag survives a reset
_RESET_KEYS = (
    StorageKey.STATS,
    StorageKey.CAPSULES,
    StorageKey.TRANSACTIONS,
    StorageKey.RECURRING,
    StorageKey.CHALLENGES,
    StorageKey.CURRENCY,
)


def _as_uuid(value: Union[UUID, str]) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class BudgetSession:
    """
    One user's budget, loaded from a key-value store.

    Flow of a mutation:
    1. Validate → two-stage InputValidator (reject = no-op, returns None)
    2. Apply → LedgerEngine swaps in a new snapshot
    3. Evaluate → on_mutation hook completes challenges, awards XP
    4. Detect → level-up notification
    5. Persist → every slice the call touched

    All public methods are serialized by one re-entrant lock, shared with
    the optional background unlock ticker.
    """

    def __init__(
        self,
        store: Optional[KeyValueStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        event_bus: Optional[EventBus] = None,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
        clock: Callable[[], int] = epoch_ms,
        start_ticker: Optional[bool] = None,
    ):
        self._settings = settings or get_settings()
        set_log_level(self._settings.app.debug_mode)
        self._store = store if store is not None else create_store(self._settings.storage)
        self._audit = audit_logger or AuditLogger()
        self._bus = event_bus or EventBus()
        self._today = today
        self._clock = clock
        self._lock = threading.RLock()
        self._validator = InputValidator(self._settings.app, today=today)

        self._cid: Optional[UUID] = None
        self._dirty: set[str] = set()
        self._recently_completed: Optional[ChallengeDef] = None
        self._new_level: Optional[LevelDef] = None
        self._last_deleted: Optional[Transaction] = None
        self._last_validation: Optional[ValidationResult] = None

        with self._lock:
            self._load()
            self._flush()

        gamification = self._settings.gamification
        if start_ticker is None:
            start_ticker = gamification.run_ticker
        self._ticker = UnlockTicker(self.tick, interval=gamification.tick_interval_seconds)
        if start_ticker:
            self._ticker.start()

    # ------------------------------------------------------------------
    # Loading & persistence
    # ------------------------------------------------------------------

    def _read(self, key: StorageKey, adapter: TypeAdapter, default: Any) -> Any:
        """Read one slice; any failure falls back to the default."""
        try:
            raw = self._store.get(key.value)
        except StorageError as e:
            self._audit.log_storage_failure(key.value, "read", e)
            return default
        if raw is None:
            return default
        try:
            return adapter.validate_python(raw)
        except ValidationError as e:
            self._audit.log_storage_failure(key.value, "read", e)
            return default

    def _write(self, key: StorageKey, value: Any) -> bool:
        try:
            self._store.set(key.value, value)
        except StorageError as e:
            self._audit.log_storage_failure(key.value, "write", e)
            return False
        return True

    def _default_currency(self) -> Currency:
        try:
            return Currency(self._settings.app.default_currency)
        except ValueError:
            return Currency.USD

    def _load(self) -> None:
        stats = self._read(StorageKey.STATS, _STATS, UserStats())
        transactions = self._read(StorageKey.TRANSACTIONS, _TRANSACTIONS, [])
        capsules = self._read(StorageKey.CAPSULES, _CAPSULES, [])
        rules = self._read(StorageKey.RECURRING, _RECURRING, [])
        states = self._read(StorageKey.CHALLENGES, _CHALLENGES, {})
        self._currency = self._read(StorageKey.CURRENCY, _CURRENCY, self._default_currency())
        self._translucent = self._read(StorageKey.TRANSLUCENT, _FLAG, False)

        self._ledger = LedgerEngine(
            transactions=transactions,
            stats=stats,
            capsules=capsules,
            today=self._today,
            on_mutation=self._on_mutation,
            event_bus=self._bus,
        )
        self._scheduler = RecurringScheduler(rules)
        self._gamification = GamificationEngine(
            states=states,
            current_level=stats.level,
            unlock_delay_ms=self._settings.gamification.unlock_delay_ms,
            clock=self._clock,
        )

        if self._ledger.refresh_streak() != stats.streak_days:
            self._dirty.add(SLICE_STATS)
        self._process_recurring()

        logger.info(
            "session_loaded",
            environment=self._settings.app.app_environment,
            transactions=len(self._ledger.transactions),
            capsules=len(self._ledger.capsules),
            recurring_rules=len(self._scheduler.rules),
        )

    def _payload(self, slice_name: str) -> tuple[StorageKey, Any]:
        if slice_name == SLICE_STATS:
            return StorageKey.STATS, _STATS.dump_python(self._ledger.stats, mode="json")
        if slice_name == SLICE_TRANSACTIONS:
            return StorageKey.TRANSACTIONS, _TRANSACTIONS.dump_python(self._ledger.transactions, mode="json")
        if slice_name == SLICE_CAPSULES:
            return StorageKey.CAPSULES, _CAPSULES.dump_python(self._ledger.capsules, mode="json")
        if slice_name == SLICE_RECURRING:
            return StorageKey.RECURRING, _RECURRING.dump_python(self._scheduler.rules, mode="json")
        if slice_name == SLICE_CHALLENGES:
            return StorageKey.CHALLENGES, _CHALLENGES.dump_python(self._gamification.snapshot(), mode="json")
        raise ValueError(f"Unknown slice: {slice_name}")

    def _flush(self) -> None:
        """Persist every slice touched since the last flush."""
        dirty, self._dirty = self._dirty, set()
        for slice_name in sorted(dirty):
            key, value = self._payload(slice_name)
            self._write(key, value)

    @contextmanager
    def _mutation(self) -> Iterator[UUID]:
        """Lock, tag the call with a correlation id, persist on the way out."""
        with self._lock:
            cid = create_correlation_id()
            self._cid = cid
            try:
                self._apply_unlocks()
                yield cid
            finally:
                self._cid = None
                self._flush()

    # ------------------------------------------------------------------
    # Gamification plumbing
    # ------------------------------------------------------------------

    def _on_mutation(self, change: LedgerChange) -> None:
        """Runs inside every ledger commit, before the mutation returns."""
        self._dirty.update(change.slices)
        if change.affects_history:
            self._run_evaluation()

    def _run_evaluation(self) -> None:
        result = self._gamification.evaluate(
            self._ledger.stats,
            self._ledger.transactions,
            self._today(),
        )
        if not result.has_changes:
            return

        self._dirty.add(SLICE_CHALLENGES)
        for challenge_id in result.completed_ids:
            challenge = get_challenge(challenge_id)
            self._audit.log(AuditEventBuilder.challenge_completed(
                challenge_id=challenge_id,
                xp_reward=challenge.xp_reward if challenge else 0,
                manual=False,
                correlation_id=self._cid,
            ))
        self._log_scheduled(result.scheduled_unlocks)

        self._recently_completed = result.recently_completed
        self._bus.publish(CHALLENGE_COMPLETED, {
            "challenge_ids": list(result.completed_ids),
            "challenge_id": result.recently_completed.id if result.recently_completed else None,
            "xp_awarded": result.xp_awarded,
        })
        self._grant_xp(result.xp_awarded)

    def _log_scheduled(self, challenge_ids: list[str]) -> None:
        states = self._gamification.snapshot()
        for challenge_id in challenge_ids:
            unlock_time = states[challenge_id].unlock_time
            self._audit.log(AuditEventBuilder.unlock_scheduled(
                challenge_id=challenge_id,
                unlock_time=unlock_time,
                correlation_id=self._cid,
            ))

    def _grant_xp(self, amount: int) -> None:
        if amount <= 0:
            return
        stats = self._gamification.award_xp(self._ledger.stats, amount)
        self._ledger.set_progress(stats.xp, stats.level, stats.level_title)
        self._dirty.add(SLICE_STATS)
        self._audit.log(AuditEventBuilder.xp_awarded(amount, stats.xp, self._cid))

        new_level = self._gamification.observe_level(stats.level)
        if new_level is not None:
            self._new_level = new_level
            self._audit.log(AuditEventBuilder.level_up(new_level.level, new_level.name, self._cid))
            self._bus.publish(LEVEL_UP, {"level": new_level.level, "name": new_level.name})

    def _apply_unlocks(self) -> list[str]:
        unlocked = self._gamification.refresh_unlocks()
        if unlocked:
            self._dirty.add(SLICE_CHALLENGES)
            self._audit.log(AuditEventBuilder.challenges_unlocked(unlocked))
            self._bus.publish(CHALLENGES_UNLOCKED, {"challenge_ids": unlocked})
        return unlocked

    def _process_recurring(self) -> int:
        result = self._scheduler.process(self._ledger.stats, self._ledger.capsules, self._today())
        for rule_id in result.skipped_rule_ids:
            self._audit.log_error(
                "recurring_rule_skipped",
                "a due instance of this rule failed validation",
                {"rule_id": rule_id},
                self._cid,
            )
        if not result.has_changes:
            return 0
        self._dirty.add(SLICE_RECURRING)
        self._ledger.ingest_recurring(result)
        self._audit.log(AuditEventBuilder.recurring_materialized(
            count=len(result.transactions),
            rule_ids=result.rule_ids,
            correlation_id=self._cid,
        ))
        return len(result.transactions)

    def _reject(self, result: ValidationResult) -> None:
        self._last_validation = result
        self._audit.log_input_rejected(
            entity_type=result.entity_type,
            issues=[issue.model_dump() for issue in result.issues],
            correlation_id=self._cid,
        )

    def _accept(self, result: ValidationResult) -> None:
        self._last_validation = result
        if result.warnings:
            logger.warning(
                "input_warnings",
                entity_type=result.entity_type,
                warnings=result.warnings,
                correlation_id=str(self._cid),
            )

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def stats(self) -> UserStats:
        return self._ledger.stats

    @property
    def transactions(self) -> list[Transaction]:
        return self._ledger.transactions

    @property
    def capsules(self) -> list[Capsule]:
        return self._ledger.capsules

    @property
    def recurring_transactions(self) -> list[RecurringTransaction]:
        return self._scheduler.rules

    @property
    def challenges(self) -> tuple[ChallengeDef, ...]:
        return self._gamification.challenges

    @property
    def challenge_states(self) -> dict[str, ChallengeState]:
        """Current challenge states; unlocks that fell due are applied first."""
        with self._lock:
            self.tick()
            return self._gamification.snapshot()

    @property
    def currency(self) -> Currency:
        return self._currency

    @property
    def is_translucent(self) -> bool:
        return self._translucent

    @property
    def next_level_xp(self) -> int:
        return next_level_xp(self._ledger.stats.level or 1)

    @property
    def recently_completed_challenge(self) -> Optional[ChallengeDef]:
        return self._recently_completed

    @property
    def new_level_data(self) -> Optional[LevelDef]:
        return self._new_level

    @property
    def last_deleted(self) -> Optional[Transaction]:
        return self._last_deleted

    @property
    def last_validation(self) -> Optional[ValidationResult]:
        """Result of the most recent input check, for showing warnings."""
        return self._last_validation

    @property
    def events(self) -> EventBus:
        return self._bus

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    def insights(self) -> InsightsQuery:
        return InsightsQuery(self._ledger.transactions, self._ledger.stats, today=self._today)

    def capsule_summary(self) -> CapsuleSummary:
        return summarize_capsules(self._ledger.capsules)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def add_transaction(self, data: Any) -> Optional[Transaction]:
        """Validate and record a transaction. Rejected input returns None."""
        with self._mutation() as cid:
            parsed, result = self._validator.validate_transaction(data, self._ledger.stats.savings_goals)
            if parsed is None:
                self._reject(result)
                return None
            self._accept(result)

            tx = self._ledger.add_transaction(parsed)
            self._audit.log_transaction_added(
                transaction_id=tx.id,
                tx_type=tx.type.value,
                amount=str(tx.amount),
                category=tx.category,
                correlation_id=cid,
            )
            return tx

    def edit_transaction(self, tx_id: Union[UUID, str], data: Any) -> Optional[Transaction]:
        """Replace a transaction in place (revert old effect, apply new one)."""
        with self._mutation() as cid:
            uid = _as_uuid(tx_id)
            old = self._ledger.get_transaction(uid) if uid else None
            if old is None:
                self._audit.log_ignored("edit_transaction", "transaction", str(tx_id), correlation_id=cid)
                return None

            parsed, result = self._validator.validate_transaction(data, self._ledger.stats.savings_goals)
            if parsed is None:
                self._reject(result)
                return None
            self._accept(result)

            before = old.to_input().model_dump(mode="json")
            after = parsed.model_dump(mode="json")
            tx = self._ledger.edit_transaction(uid, parsed)
            self._audit.log_transaction_edited(
                transaction_id=uid,
                changes={
                    name: {"from": before.get(name), "to": value}
                    for name, value in after.items()
                    if before.get(name) != value
                },
                correlation_id=cid,
            )
            return tx

    def delete_transaction(self, tx_id: Union[UUID, str]) -> Optional[Transaction]:
        """Revert and remove a transaction; it can be restored with undo_delete()."""
        with self._mutation() as cid:
            uid = _as_uuid(tx_id)
            tx = self._ledger.delete_transaction(uid) if uid else None
            if tx is None:
                self._audit.log_ignored("delete_transaction", "transaction", str(tx_id), correlation_id=cid)
                return None

            self._last_deleted = tx
            self._audit.log_transaction_deleted(
                transaction_id=tx.id,
                amount=str(tx.amount),
                category=tx.category,
                correlation_id=cid,
            )
            return tx

    def undo_delete(self) -> Optional[Transaction]:
        """
        Re-add the most recently deleted transaction.

        The restored entry gets a new id and goes to the top of the history.
        Only one step of undo exists; the slot empties once used.
        """
        with self._mutation() as cid:
            deleted = self._last_deleted
            if deleted is None:
                self._audit.log_ignored("undo_delete", "transaction", "-", "nothing to undo", cid)
                return None

            self._last_deleted = None
            tx = self._ledger.add_transaction(deleted.to_input())
            self._audit.log(AuditEventBuilder.transaction_restored(deleted.id, tx.id, cid))
            return tx

    # ------------------------------------------------------------------
    # Capsules
    # ------------------------------------------------------------------

    def add_capsule(self, data: Any) -> Optional[Capsule]:
        with self._mutation() as cid:
            parsed, result = self._validator.validate_capsule(data)
            if parsed is None:
                self._reject(result)
                return None
            self._accept(result)

            capsule = self._ledger.add_capsule(parsed)
            self._audit.log_entity_changed(
                AuditEventType.CAPSULE_ADDED,
                "capsule",
                str(capsule.id),
                f"Capsule added: {capsule.name}",
                {"total": str(capsule.total)},
                cid,
            )
            return capsule

    def edit_capsule(self, capsule_id: Union[UUID, str], changes: dict) -> Optional[Capsule]:
        """Partial update of a capsule; the merged result is re-validated."""
        with self._mutation() as cid:
            uid = _as_uuid(capsule_id)
            existing = self._ledger.get_capsule(uid) if uid else None
            if existing is None:
                self._audit.log_ignored("edit_capsule", "capsule", str(capsule_id), correlation_id=cid)
                return None

            merged = {**existing.model_dump(include={"name", "total", "spent", "icon"}), **changes}
            parsed, result = self._validator.validate_capsule(merged)
            if parsed is None:
                self._reject(result)
                return None
            self._accept(result)

            capsule = self._ledger.edit_capsule(uid, parsed.model_dump())
            self._audit.log_entity_changed(
                AuditEventType.CAPSULE_UPDATED,
                "capsule",
                str(uid),
                f"Capsule updated: {capsule.name}",
                {"changes": sorted(changes)},
                cid,
            )
            return capsule

    def delete_capsule(self, capsule_id: Union[UUID, str]) -> Optional[Capsule]:
        with self._mutation() as cid:
            uid = _as_uuid(capsule_id)
            capsule = self._ledger.delete_capsule(uid) if uid else None
            if capsule is None:
                self._audit.log_ignored("delete_capsule", "capsule", str(capsule_id), correlation_id=cid)
                return None
            self._audit.log_entity_changed(
                AuditEventType.CAPSULE_DELETED,
                "capsule",
                str(uid),
                f"Capsule deleted: {capsule.name}",
                correlation_id=cid,
            )
            return capsule

    # ------------------------------------------------------------------
    # Savings goals
    # ------------------------------------------------------------------

    def add_savings_goal(self, data: Any) -> Optional[SavingsGoal]:
        with self._mutation() as cid:
            parsed, result = self._validator.validate_goal(data)
            if parsed is None:
                self._reject(result)
                return None
            self._accept(result)

            goal = self._ledger.add_savings_goal(parsed)
            if goal is None:
                self._audit.log_ignored("add_savings_goal", "goal", parsed.name, "duplicate name", cid)
                return None
            self._audit.log_entity_changed(
                AuditEventType.GOAL_ADDED,
                "goal",
                goal.name,
                f"Savings goal added: {goal.name}",
                {"target": str(goal.target), "current": str(goal.current)},
                cid,
            )
            return goal

    def update_savings_goal(self, name: str, amount: Union[Decimal, float, str]) -> Optional[SavingsGoal]:
        """Add funds to a goal (moves total savings, not the balance)."""
        with self._mutation() as cid:
            value, result = self._validator.validate_amount(amount)
            if value is None:
                self._reject(result)
                return None
            self._accept(result)

            goal = self._ledger.update_savings_goal(name, value)
            if goal is None:
                self._audit.log_ignored("update_savings_goal", "goal", name, correlation_id=cid)
                return None
            self._audit.log_entity_changed(
                AuditEventType.GOAL_FUNDED,
                "goal",
                name,
                f"Savings goal funded: {name}",
                {"amount": str(value), "current": str(goal.current)},
                cid,
            )
            return goal

    def edit_savings_goal(self, old_name: str, data: Any) -> Optional[SavingsGoal]:
        """Replace a goal; a rename carries its savings transactions along."""
        with self._mutation() as cid:
            parsed, result = self._validator.validate_goal(data)
            if parsed is None:
                self._reject(result)
                return None
            self._accept(result)

            goal = self._ledger.edit_savings_goal(old_name, parsed)
            if goal is None:
                self._audit.log_ignored(
                    "edit_savings_goal", "goal", old_name, "not found or name taken", cid,
                )
                return None
            self._audit.log_entity_changed(
                AuditEventType.GOAL_UPDATED,
                "goal",
                goal.name,
                f"Savings goal updated: {old_name}",
                {"old_name": old_name, "target": str(goal.target), "current": str(goal.current)},
                cid,
            )
            return goal

    def delete_savings_goal(self, name: str) -> Optional[SavingsGoal]:
        with self._mutation() as cid:
            goal = self._ledger.delete_savings_goal(name)
            if goal is None:
                self._audit.log_ignored("delete_savings_goal", "goal", name, correlation_id=cid)
                return None
            self._audit.log_entity_changed(
                AuditEventType.GOAL_DELETED,
                "goal",
                name,
                f"Savings goal deleted: {name}",
                correlation_id=cid,
            )
            return goal

    # ------------------------------------------------------------------
    # Recurring rules
    # ------------------------------------------------------------------

    def add_recurring_transaction(self, data: Any) -> Optional[RecurringTransaction]:
        """Add a rule and immediately materialize whatever is already due."""
        with self._mutation() as cid:
            parsed, result = self._validator.validate_recurring(data)
            if parsed is None:
                self._reject(result)
                return None
            self._accept(result)

            rule = self._scheduler.add_rule(parsed)
            self._dirty.add(SLICE_RECURRING)
            self._audit.log_entity_changed(
                AuditEventType.RECURRING_ADDED,
                "recurring_rule",
                str(rule.id),
                f"Recurring {rule.interval.value} rule added: {rule.category}",
                {"amount": str(rule.amount), "start_date": rule.start_date.isoformat()},
                cid,
            )
            self._process_recurring()
            return next((r for r in self._scheduler.rules if r.id == rule.id), rule)

    def delete_recurring_transaction(self, rule_id: Union[UUID, str]) -> Optional[RecurringTransaction]:
        """Remove a rule. Transactions it already produced stay in the ledger."""
        with self._mutation() as cid:
            uid = _as_uuid(rule_id)
            rule = self._scheduler.delete_rule(uid) if uid else None
            if rule is None:
                self._audit.log_ignored("delete_recurring_transaction", "recurring_rule", str(rule_id), correlation_id=cid)
                return None
            self._dirty.add(SLICE_RECURRING)
            self._audit.log_entity_changed(
                AuditEventType.RECURRING_DELETED,
                "recurring_rule",
                str(uid),
                f"Recurring rule deleted: {rule.category}",
                correlation_id=cid,
            )
            return rule

    def process_recurring(self) -> int:
        """Materialize due instances now (e.g. after midnight). Returns the count."""
        with self._mutation():
            return self._process_recurring()

    # ------------------------------------------------------------------
    # Challenges
    # ------------------------------------------------------------------

    def accept_challenge(self, challenge_id: str) -> bool:
        with self._mutation() as cid:
            if not self._gamification.accept_challenge(challenge_id):
                self._audit.log_ignored("accept_challenge", "challenge", challenge_id, "not available", cid)
                return False
            self._dirty.add(SLICE_CHALLENGES)
            self._audit.log(AuditEventBuilder.challenge_accepted(challenge_id, cid))
            return True

    def claim_challenge_reward(self, challenge_id: str) -> Optional[ChallengeDef]:
        """
        Manually complete a challenge and collect its XP.

        Works from any status. The XP award counts as a stats change, so
        an evaluation pass follows it.
        """
        with self._mutation() as cid:
            claim = self._gamification.claim_challenge_reward(challenge_id)
            if claim is None:
                self._audit.log_ignored("claim_challenge_reward", "challenge", challenge_id, correlation_id=cid)
                return None

            self._dirty.add(SLICE_CHALLENGES)
            self._audit.log(AuditEventBuilder.challenge_completed(
                challenge_id=challenge_id,
                xp_reward=claim.xp_awarded,
                manual=True,
                correlation_id=cid,
            ))
            if claim.scheduled_unlock:
                self._log_scheduled([claim.scheduled_unlock])

            self._grant_xp(claim.xp_awarded)
            self._run_evaluation()
            return claim.challenge

    def tick(self) -> list[str]:
        """Apply unlocks that fell due. Called by the ticker and by reads."""
        with self._lock:
            unlocked = self._apply_unlocks()
            if unlocked:
                self._flush()
            return unlocked

    def clear_challenge_notification(self) -> None:
        with self._lock:
            self._recently_completed = None

    def clear_level_up(self) -> None:
        with self._lock:
            self._new_level = None

    # ------------------------------------------------------------------
    # Preferences & lifecycle
    # ------------------------------------------------------------------

    def set_currency(self, currency: Union[Currency, str]) -> Optional[Currency]:
        with self._mutation() as cid:
            try:
                value = Currency(currency)
            except ValueError:
                self._audit.log_ignored("set_currency", "preference", str(currency), "unsupported currency", cid)
                return None
            self._currency = value
            self._write(StorageKey.CURRENCY, value.value)
            self._audit.log(AuditEventBuilder.preference_changed("currency", value.value, cid))
            return value

    def set_translucent(self, enabled: bool) -> bool:
        with self._mutation() as cid:
            self._translucent = bool(enabled)
            self._write(StorageKey.TRANSLUCENT, self._translucent)
            self._audit.log(AuditEventBuilder.preference_changed("translucent", self._translucent, cid))
            return self._translucent

    def reset_data(self) -> None:
        """
        Return everything except the theme flag to first-run defaults.

        Stored slices are deleted rather than overwritten.
        """
        with self._mutation() as cid:
            self._ledger.reset()
            self._scheduler.reset()
            self._gamification.reset()
            self._currency = self._default_currency()
            self._recently_completed = None
            self._new_level = None
            self._last_deleted = None
            self._dirty.clear()

            for key in _RESET_KEYS:
                try:
                    self._store.delete(key.value)
                except StorageError as e:
                    self._audit.log_storage_failure(key.value, "write", e)

            self._audit.log(AuditEventBuilder.data_reset(cid))
            self._bus.publish(DATA_RESET, {})

    def export_csv(self, path: Optional[Union[str, Path]] = None) -> Optional[Union[str, Path]]:
        """
        Export the history as CSV.

        Without a path the CSV text is returned; with one the file is
        written and its path returned. An empty history exports nothing.
        """
        with self._lock:
            transactions = self._ledger.transactions
            if not transactions:
                self._audit.log_ignored("export_csv", "transaction", "-", "no transactions")
                return None
            if path is None:
                return transactions_to_csv(transactions, self._currency.value)
            return write_csv(path, transactions, self._currency.value)

    def close(self) -> None:
        """Stop the unlock ticker. Must be called without holding the lock."""
        self._ticker.stop()

    def __enter__(self) -> "BudgetSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
