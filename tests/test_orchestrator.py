"""
Integration tests for BudgetSession.

Every test runs against an in-memory store with a fixed date and a
hand-driven clock; nothing touches the wall clock or the real filesystem.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from ecobudget.events import CHALLENGE_COMPLETED, CHALLENGES_UNLOCKED, DATA_RESET, LEDGER_CHANGED, LEVEL_UP
from ecobudget.models.audit import AuditEventType
from ecobudget.models.gamification import ChallengeStatus
from ecobudget.models.ledger import (
    Currency,
    RecurringTransaction,
    RecurringTransactionInput,
)
from ecobudget.orchestrator import BudgetSession
from ecobudget.services.storage import (
    InMemoryStore,
    KeyValueStoreInterface,
    StorageKey,
    StorageUnavailableError,
)


TODAY = date(2024, 12, 18)


class FakeClock:
    """Epoch-millisecond clock moved by hand."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class BrokenStore(KeyValueStoreInterface):
    """A store whose backend is permanently unreachable."""

    def get(self, key, default=None):
        raise StorageUnavailableError(f"cannot read {key}")

    def set(self, key, value):
        raise StorageUnavailableError(f"cannot write {key}")

    def delete(self, key):
        raise StorageUnavailableError(f"cannot delete {key}")

    def keys(self):
        return []


def tx(tx_type="expense", amount="30", category="Groceries", when=TODAY, **extra):
    return {"type": tx_type, "amount": amount, "category": category, "date": when.isoformat(), **extra}


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_session(store, clock):
    def factory(backend=None, **kwargs):
        kwargs.setdefault("start_ticker", False)
        return BudgetSession(
            store=backend if backend is not None else store,
            today=lambda: TODAY,
            clock=clock,
            **kwargs,
        )
    return factory


@pytest.fixture
def session(make_session):
    with make_session() as s:
        yield s


def event_types(session):
    return [event.event_type for event in session.audit_logger.recent_events]


class TestFirstRun:
    """Tests for an empty store."""

    def test_defaults(self, session):
        """Test first-run state."""
        assert session.transactions == []
        assert session.stats.current_balance == Decimal("0")
        assert session.stats.level == 1
        assert session.currency == Currency.USD
        assert session.is_translucent is False
        assert session.next_level_xp == 300
        assert session.challenge_states["c5"].status == ChallengeStatus.LOCKED


class TestTransactions:
    """Tests for the transaction flow."""

    def test_balance_scenario(self, session):
        """Test income, capsule expense, then delete restores everything."""
        session.add_capsule({"name": "Groceries", "total": "100"})
        session.add_transaction(tx("income", "100", "Salary"))
        expense = session.add_transaction(tx("expense", "30", "Groceries"))

        assert session.stats.current_balance == Decimal("70")
        assert session.stats.monthly_expenses == Decimal("30")
        assert session.capsules[0].spent == Decimal("30")

        session.delete_transaction(expense.id)
        assert session.stats.current_balance == Decimal("100")
        assert session.capsules[0].spent == Decimal("0")
        assert session.last_deleted.id == expense.id

    def test_state_survives_reload(self, session, make_session, store):
        """Test every slice is persisted and read back."""
        session.add_capsule({"name": "Groceries", "total": "100"})
        session.add_transaction(tx("expense", "30", "Groceries", note="market"))
        session.add_savings_goal({"name": "Trip", "target": "500"})
        session.set_currency("EUR")
        session.set_translucent(True)

        assert store.get(StorageKey.STATS.value)["current_balance"] == "-30"

        reloaded = make_session()
        assert reloaded.stats == session.stats
        assert reloaded.transactions == session.transactions
        assert reloaded.capsules == session.capsules
        assert reloaded.currency == Currency.EUR
        assert reloaded.is_translucent is True

    def test_edit_transaction(self, session):
        """Test edit swaps the effect and keeps the id."""
        first = session.add_transaction(tx("expense", "30", "Food"))
        edited = session.edit_transaction(str(first.id), tx("expense", "50", "Food"))

        assert edited.id == first.id
        assert session.stats.current_balance == Decimal("-50")
        assert len(session.transactions) == 1
        assert AuditEventType.TRANSACTION_EDITED in event_types(session)

    def test_invalid_input_is_rejected(self, session):
        """Test rejected input changes nothing and is audited."""
        assert session.add_transaction(tx(amount="-5")) is None
        assert session.add_transaction(tx(amount="NaN")) is None

        assert session.transactions == []
        assert session.last_validation.has_errors is True
        assert event_types(session)[0] == AuditEventType.TRANSACTION_REJECTED

    def test_warnings_do_not_block(self, session):
        """Test a future-dated transaction is recorded with a warning."""
        added = session.add_transaction(tx(when=TODAY + timedelta(days=3)))
        assert added is not None
        assert session.last_validation.warnings

    def test_unknown_ids_are_noops(self, session):
        """Test unknown or malformed ids do nothing."""
        session.add_transaction(tx())
        before = session.stats

        assert session.delete_transaction("not-a-uuid") is None
        assert session.edit_transaction("00000000-0000-0000-0000-000000000000", tx()) is None
        assert session.delete_capsule("nope") is None
        assert session.delete_recurring_transaction("nope") is None
        assert session.delete_savings_goal("missing") is None
        assert session.stats == before
        assert AuditEventType.MUTATION_IGNORED in event_types(session)

    def test_undo_delete(self, session):
        """Test undo re-adds the deleted transaction once."""
        added = session.add_transaction(tx("expense", "30", "Food"))
        session.delete_transaction(added.id)

        restored = session.undo_delete()
        assert restored.id != added.id
        assert restored.amount == added.amount
        assert session.stats.current_balance == Decimal("-30")
        assert session.undo_delete() is None

    def test_ledger_changed_event(self, session):
        """Test subscribers see every ledger mutation."""
        seen = []
        session.events.subscribe(LEDGER_CHANGED, lambda event, payload: seen.append(event.name))
        session.add_transaction(tx())
        assert seen == [LEDGER_CHANGED]


class TestCapsulesAndGoals:
    """Tests for capsule and savings goal management."""

    def test_edit_capsule_merges(self, session):
        """Test a partial edit keeps the other fields."""
        capsule = session.add_capsule({"name": "Food", "total": "100"})
        edited = session.edit_capsule(capsule.id, {"total": "250"})
        assert edited.name == "Food"
        assert edited.total == Decimal("250")

    def test_edit_capsule_rejects_bad_total(self, session):
        """Test the merged result is re-validated."""
        capsule = session.add_capsule({"name": "Food", "total": "100"})
        assert session.edit_capsule(capsule.id, {"total": "-1"}) is None
        assert session.capsules[0].total == Decimal("100")

    def test_capsule_summary(self, session):
        """Test the summary reflects capsule spend."""
        session.add_capsule({"name": "Food", "total": "100"})
        session.add_transaction(tx("expense", "40", "Food"))
        summary = session.capsule_summary()
        assert summary.total_spent == Decimal("40")

    def test_goal_lifecycle(self, session):
        """Test add, fund, rename and delete a savings goal."""
        session.add_savings_goal({"name": "Trip", "target": "500"})
        assert session.add_savings_goal({"name": "Trip", "target": "10"}) is None

        funded = session.update_savings_goal("Trip", "50")
        assert funded.current == Decimal("50")
        assert session.update_savings_goal("Trip", "-5") is None

        renamed = session.edit_savings_goal("Trip", {"name": "Holiday", "target": "800", "current": "50"})
        assert renamed.name == "Holiday"
        assert session.delete_savings_goal("Holiday").name == "Holiday"
        assert session.stats.savings_goals == []


class TestRecurring:
    """Tests for recurring rules in the session."""

    def test_add_materializes_due_instances(self, session):
        """Test a rule started in the past catches up immediately."""
        rule = session.add_recurring_transaction({
            "type": "expense",
            "amount": "10",
            "category": "Gym",
            "interval": "daily",
            "start_date": (TODAY - timedelta(days=2)).isoformat(),
        })
        assert len(session.transactions) == 3
        assert rule.next_date == TODAY + timedelta(days=1)
        assert session.stats.current_balance == Decimal("-30")
        assert session.process_recurring() == 0

    def test_catch_up_on_load(self, store, make_session):
        """Test a stored rule that fell behind is replayed when the session opens."""
        rule = RecurringTransaction.from_input(RecurringTransactionInput(
            type="income",
            amount=Decimal("1000"),
            category="Salary",
            interval="monthly",
            start_date=date(2024, 10, 1),
        ))
        store.set(StorageKey.RECURRING.value, [rule.model_dump(mode="json")])

        session = make_session()
        assert len(session.transactions) == 3
        assert session.stats.current_balance == Decimal("3000")
        assert session.recurring_transactions[0].next_date == date(2025, 1, 1)
        assert store.get(StorageKey.RECURRING.value)[0]["next_date"] == "2025-01-01"

    def test_delete_keeps_history(self, session):
        """Test deleting a rule leaves its transactions."""
        rule = session.add_recurring_transaction({
            "type": "expense",
            "amount": "10",
            "category": "Gym",
            "interval": "weekly",
            "start_date": TODAY.isoformat(),
        })
        session.delete_recurring_transaction(rule.id)
        assert session.recurring_transactions == []
        assert len(session.transactions) == 1


    def test_rule_note_must_leave_room_for_prefix(self, session, make_session, store):
        """Test a note that would overflow once prefixed is refused up front."""
        rule = session.add_recurring_transaction({
            "type": "expense",
            "amount": "10",
            "category": "Gym",
            "interval": "daily",
            "start_date": (TODAY - timedelta(days=2)).isoformat(),
            "note": "x" * 500,
        })
        assert rule is None
        assert session.last_validation.has_errors is True
        assert store.get(StorageKey.RECURRING.value, []) == []
        assert make_session().recurring_transactions == []

    def test_longest_rule_note_materializes(self, session):
        """Test the longest accepted note still fits on the generated transactions."""
        session.add_recurring_transaction({
            "type": "expense",
            "amount": "10",
            "category": "Gym",
            "interval": "daily",
            "start_date": TODAY.isoformat(),
            "note": "x" * 488,
        })
        assert len(session.transactions[0].note) == 500

    def test_unbuildable_stored_rule_is_skipped(self, store, make_session):
        """Test a stored rule whose instances fail validation does not block loading."""
        bad = RecurringTransaction.from_input(RecurringTransactionInput(
            type="expense",
            amount=Decimal("10"),
            category="Gym",
            interval="daily",
            start_date=TODAY - timedelta(days=2),
        )).model_copy(update={"note": "x" * 495})
        good = RecurringTransaction.from_input(RecurringTransactionInput(
            type="income",
            amount=Decimal("100"),
            category="Salary",
            interval="monthly",
            start_date=TODAY,
        ))
        store.set(StorageKey.RECURRING.value, [bad.model_dump(mode="json"), good.model_dump(mode="json")])

        session = make_session()
        assert [t.category for t in session.transactions] == ["Salary"]
        assert session.recurring_transactions[0].next_date == TODAY - timedelta(days=2)
        assert AuditEventType.SYSTEM_ERROR in event_types(session)

        again = make_session()
        assert len(again.recurring_transactions) == 2
        assert len(again.transactions) == 1


class TestChallenges:
    """Tests for the gamification flow through the session."""

    def test_auto_completion_through_ledger(self, session):
        """Test an active challenge completes when a transaction satisfies it."""
        completed = []
        session.events.subscribe(CHALLENGE_COMPLETED, lambda event, payload: completed.append(payload))

        assert session.accept_challenge("c8") is True
        session.add_transaction(tx("income", "100", "Salary"))

        assert session.challenge_states["c8"].status == ChallengeStatus.COMPLETED
        assert session.stats.xp == 200
        assert session.recently_completed_challenge.id == "c8"
        assert completed[0]["challenge_id"] == "c8"
        assert completed[0]["xp_awarded"] == 200

        session.clear_challenge_notification()
        assert session.recently_completed_challenge is None

    def test_accept_is_guarded(self, session):
        """Test locked and already-active challenges cannot be accepted."""
        assert session.accept_challenge("c5") is False
        assert session.accept_challenge("c1") is True
        assert session.accept_challenge("c1") is False

    def test_accept_alone_does_not_complete(self, session):
        """Test accepting never triggers an evaluation by itself."""
        session.add_transaction(tx("income", "100", "Salary"))
        session.accept_challenge("c8")
        assert session.challenge_states["c8"].status == ChallengeStatus.ACTIVE

    def test_claim_keeps_level_one(self, session):
        """Test claiming a 150 XP challenge stays on level 1."""
        session.accept_challenge("c1")
        claimed = session.claim_challenge_reward("c1")

        assert claimed.id == "c1"
        assert session.stats.xp == 150
        assert session.stats.level == 1
        assert session.new_level_data is None
        assert session.recently_completed_challenge is None

    def test_claim_unknown(self, session):
        """Test unknown challenges are ignored."""
        assert session.claim_challenge_reward("c99") is None
        assert session.stats.xp == 0

    def test_level_up(self, session):
        """Test crossing 300 XP raises a level-up."""
        levels = []
        session.events.subscribe(LEVEL_UP, lambda event, payload: levels.append(payload["level"]))

        session.claim_challenge_reward("c4")
        assert session.stats.level == 2
        assert session.stats.level_title == "Learner"
        assert session.new_level_data.level == 2
        assert levels == [2]
        assert session.next_level_xp == 750

        session.clear_level_up()
        assert session.new_level_data is None

    def test_unlock_after_delay(self, session, clock, store):
        """Test a completion unlocks the next challenge one minute later."""
        unlocked = []
        session.events.subscribe(CHALLENGES_UNLOCKED, lambda event, payload: unlocked.extend(payload["challenge_ids"]))

        session.claim_challenge_reward("c1")
        assert session.challenge_states["c5"].status == ChallengeStatus.LOCKED

        clock.advance(60_000)
        assert session.challenge_states["c5"].status == ChallengeStatus.AVAILABLE
        assert unlocked == ["c5"]
        assert store.get(StorageKey.CHALLENGES.value)["c5"]["status"] == "available"

    def test_pending_unlock_survives_reload(self, session, make_session, clock):
        """Test an armed unlock is persisted with its due time."""
        session.claim_challenge_reward("c1")
        clock.advance(60_000)

        reloaded = make_session()
        assert reloaded.challenge_states["c5"].status == ChallengeStatus.AVAILABLE
        assert reloaded.stats.xp == 150


    def test_challenge_states_is_a_copy(self, session, clock):
        """Test unlocks seen through challenge_states are audited once and callers cannot alter state."""
        session.claim_challenge_reward("c1")
        clock.advance(60_000)

        states = session.challenge_states
        states.pop("c5")
        assert session.challenge_states["c5"].status == ChallengeStatus.AVAILABLE
        assert event_types(session).count(AuditEventType.CHALLENGE_UNLOCKED) == 1


class TestStorageFailures:
    """Tests for degraded storage."""

    def test_unreachable_store(self, make_session):
        """Test the session works in memory when the store is down."""
        broken = make_session(BrokenStore())
        added = broken.add_transaction(tx("income", "100", "Salary"))

        assert added is not None
        assert broken.stats.current_balance == Decimal("100")
        types = event_types(broken)
        assert AuditEventType.STORAGE_READ_FAILED in types
        assert AuditEventType.STORAGE_WRITE_FAILED in types

    def test_corrupt_slice_falls_back(self, store, make_session):
        """Test a slice that does not decode is replaced by its default."""
        store.set(StorageKey.TRANSACTIONS.value, {"not": "a list"})
        store.set(StorageKey.CURRENCY.value, "XYZ")

        session = make_session()
        assert session.transactions == []
        assert session.currency == Currency.USD
        assert AuditEventType.STORAGE_READ_FAILED in event_types(session)

    def test_reset_with_broken_store(self, make_session):
        """Test reset still clears the in-memory state."""
        broken = make_session(BrokenStore())
        broken.add_transaction(tx())
        broken.reset_data()
        assert broken.transactions == []


class TestPreferencesAndLifecycle:
    """Tests for currency, theme, reset and export."""

    def test_set_currency(self, session, store):
        """Test supported currencies are stored and others ignored."""
        assert session.set_currency(Currency.MYR) == Currency.MYR
        assert session.set_currency("DOGE") is None
        assert session.currency == Currency.MYR
        assert store.get(StorageKey.CURRENCY.value) == "MYR"

    def test_reset_keeps_theme(self, session, store):
        """Test reset clears data but not the theme flag."""
        reset_events = []
        session.events.subscribe(DATA_RESET, lambda event, payload: reset_events.append(event.name))
        session.set_translucent(True)
        session.set_currency("EUR")
        session.add_transaction(tx())
        session.claim_challenge_reward("c1")

        session.reset_data()

        assert session.transactions == []
        assert session.stats.xp == 0
        assert session.currency == Currency.USD
        assert session.challenge_states["c1"].status == ChallengeStatus.AVAILABLE
        assert session.is_translucent is True
        assert store.keys() == [StorageKey.TRANSLUCENT.value]
        assert reset_events == [DATA_RESET]

    def test_export_csv(self, session, tmp_path):
        """Test export returns text, or writes a file when given a path."""
        assert session.export_csv() is None

        session.set_currency("GBP")
        session.add_transaction(tx("expense", "12.5", "Food"))
        text = session.export_csv()
        assert text.split("\n")[1] == '2024-12-18,expense,"Food",12.50,GBP,'

        written = session.export_csv(tmp_path)
        assert written.exists()

    def test_export_very_large_amount(self, session):
        """Test an accepted but enormous amount still exports."""
        assert session.add_transaction(tx("income", "1e30", "Lottery")) is not None
        row = session.export_csv().split("\n")[1]
        assert ",1000000000000000000000000000000.00," in row

    def test_insights(self, session):
        """Test insights read the live ledger."""
        session.add_transaction(tx("income", "500", "Salary"))
        session.add_transaction(tx("expense", "100", "Food"))
        assert session.insights().cash_flow() == Decimal("400")

    def test_context_manager_closes(self, make_session):
        """Test leaving the with block stops the ticker."""
        with make_session(start_ticker=True) as s:
            s.add_transaction(tx())
        assert s._ticker.is_running is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
