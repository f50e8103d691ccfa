"""
Tests for the two-stage input validator.
"""

import pytest
from datetime import date
from decimal import Decimal

from ecobudget.config import AppSettings
from ecobudget.models.ledger import SavingsGoal, TransactionInput
from ecobudget.validation import InputValidator


TODAY = date(2024, 12, 18)


@pytest.fixture
def validator():
    return InputValidator(AppSettings(max_transaction_amount=5000), today=lambda: TODAY)


def tx_data(**overrides):
    data = {"type": "expense", "amount": "30", "category": "Groceries", "date": "2024-12-18"}
    data.update(overrides)
    return data


class TestSchemaStage:
    """Tests for stage 1 (rejection)."""

    def test_valid_transaction(self, validator):
        """Test a clean transaction passes with no warnings."""
        parsed, result = validator.validate_transaction(tx_data())
        assert isinstance(parsed, TransactionInput)
        assert result.is_valid is True
        assert result.warnings == []

    def test_accepts_model_instance(self, validator):
        """Test an already-built input model is accepted."""
        parsed, result = validator.validate_transaction(TransactionInput(**tx_data()))
        assert parsed.amount == Decimal("30")
        assert result.schema_valid is True

    @pytest.mark.parametrize("amount", ["0", "-10", "NaN", "abc"])
    def test_bad_amount_rejected(self, validator, amount):
        """Test non-positive and non-numeric amounts are refused."""
        parsed, result = validator.validate_transaction(tx_data(amount=amount))
        assert parsed is None
        assert result.schema_valid is False
        assert result.has_errors is True
        assert any(issue.field == "amount" for issue in result.issues)

    def test_missing_category(self, validator):
        """Test required fields are enforced."""
        data = tx_data()
        del data["category"]
        parsed, result = validator.validate_transaction(data)
        assert parsed is None
        assert result.issues[0].field == "category"

    def test_capsule_needs_positive_total(self, validator):
        """Test capsule limits must be positive."""
        parsed, result = validator.validate_capsule({"name": "Food", "total": "0"})
        assert parsed is None
        assert result.entity_type == "capsule"

    def test_recurring_needs_known_interval(self, validator):
        """Test recurrence interval is restricted."""
        parsed, _ = validator.validate_recurring({
            "type": "expense",
            "amount": "10",
            "category": "Gym",
            "interval": "fortnightly",
            "start_date": "2024-12-01",
        })
        assert parsed is None


class TestSemanticStage:
    """Tests for stage 2 (warnings only)."""

    def test_large_amount_warns(self, validator):
        """Test amounts above the threshold are accepted with a warning."""
        parsed, result = validator.validate_transaction(tx_data(amount="9000"))
        assert parsed is not None
        assert result.is_valid is True
        assert result.issues[0].issue_type == "suspicious_value"
        assert len(result.warnings) == 1

    def test_future_date_warns(self, validator):
        """Test future-dated transactions are flagged."""
        _, result = validator.validate_transaction(tx_data(date="2024-12-25"))
        assert [i.issue_type for i in result.issues] == ["future_date"]
        assert result.is_valid is True

    def test_savings_into_unknown_goal_warns(self, validator):
        """Test savings whose category matches no goal are flagged."""
        goals = [SavingsGoal(name="Trip", target=Decimal("500"))]
        _, ok = validator.validate_transaction(tx_data(type="savings", category="Trip"), goals)
        _, warned = validator.validate_transaction(tx_data(type="savings", category="Car"), goals)
        assert ok.warnings == []
        assert warned.issues[0].issue_type == "unknown_goal"

    def test_goal_target_warns(self, validator):
        """Test goal targets use the same threshold."""
        parsed, result = validator.validate_goal({"name": "House", "target": "100000"})
        assert parsed.name == "House"
        assert result.warnings


class TestValidateAmount:
    """Tests for bare amounts."""

    def test_valid(self, validator):
        """Test numbers and numeric strings pass."""
        amount, result = validator.validate_amount("25.5")
        assert amount == Decimal("25.5")
        assert result.is_valid is True
        assert validator.validate_amount(10)[0] == Decimal("10")

    @pytest.mark.parametrize("value", [0, -1, "NaN", float("nan"), "Infinity", "ten", None])
    def test_invalid(self, validator, value):
        """Test anything but a positive finite number is refused."""
        amount, result = validator.validate_amount(value)
        assert amount is None
        assert result.issues[0].issue_type == "invalid_value"


class TestSummary:
    """Tests for the user-facing summary text."""

    def test_all_clear(self, validator):
        """Test a clean result."""
        _, result = validator.validate_transaction(tx_data())
        assert validator.get_user_friendly_summary(result) == "All checks passed."

    def test_errors_and_warnings(self, validator):
        """Test rejected and warned results are described."""
        _, rejected = validator.validate_transaction(tx_data(amount="-1"))
        assert validator.get_user_friendly_summary(rejected).startswith("This entry was not saved:")

        _, warned = validator.validate_transaction(tx_data(date="2025-01-02"))
        text = validator.get_user_friendly_summary(warned)
        assert "Please double-check:" in text
        assert "future" in text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
