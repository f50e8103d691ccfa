"""
Tests for the read-only insight queries.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from ecobudget.models.ledger import Transaction, UserStats
from ecobudget.queries import InsightsQuery


TODAY = date(2024, 12, 18)


def tx(tx_type="expense", amount="10", category="Groceries", when=TODAY):
    return Transaction(type=tx_type, amount=Decimal(amount), category=category, date=when)


def query(transactions, stats=None, today=TODAY):
    return InsightsQuery(transactions, stats or UserStats(), today=lambda: today)


class TestCashFlow:
    """Tests for the monthly income and cash flow figures."""

    def test_monthly_income_only_this_month(self):
        """Test income from other months is ignored."""
        q = query([
            tx("income", "1000", "Salary", date(2024, 12, 1)),
            tx("income", "500", "Salary", date(2024, 11, 30)),
            tx("expense", "40"),
        ])
        assert q.monthly_income() == Decimal("1000")

    def test_cash_flow_uses_running_expenses(self):
        """Test cash flow subtracts the stats' monthly expense total."""
        q = query([tx("income", "1000", "Salary")], UserStats(monthly_expenses=Decimal("250")))
        assert q.cash_flow() == Decimal("750")

    def test_empty_history(self):
        """Test no data gives zeros."""
        assert query([]).cash_flow() == Decimal("0")


class TestSixMonthSummary:
    """Tests for the six-month chart data."""

    def test_months_oldest_first(self):
        """Test the window ends on the current month."""
        summary = query([]).six_month_summary()
        assert [m.label for m in summary.months] == ["Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
        assert summary.months[0].year == 2024
        assert summary.max_value == Decimal("100")

    def test_window_crosses_year(self):
        """Test months before January come from the previous year."""
        summary = query([], today=date(2025, 2, 10)).six_month_summary()
        assert [(m.year, m.month) for m in summary.months][:2] == [(2024, 9), (2024, 10)]

    def test_buckets_and_scale(self):
        """Test totals land in their month and savings are excluded."""
        summary = query([
            tx("income", "2000", "Salary", date(2024, 10, 5)),
            tx("expense", "300", "Rent", date(2024, 10, 6)),
            tx("savings", "900", "Trip", date(2024, 10, 7)),
            tx("expense", "50", "Food", date(2024, 1, 1)),
        ]).six_month_summary()
        october = summary.months[3]
        assert october.income == Decimal("2000")
        assert october.expense == Decimal("300")
        assert summary.max_value == Decimal("2000")


class TestCategorySpotlight:
    """Tests for the week-over-week category swing."""

    def test_no_data(self):
        """Test an empty history has no spotlight."""
        spotlight = query([]).category_spotlight()
        assert spotlight.has_change is False

    def test_increase_from_nothing(self):
        """Test a new category counts as +100%."""
        spotlight = query([tx(amount="80", category="Travel", when=TODAY - timedelta(days=2))]).category_spotlight()
        assert spotlight.category == "Travel"
        assert spotlight.amount == Decimal("80")
        assert spotlight.percent == 100.0
        assert spotlight.is_increase is True

    def test_percent_change(self):
        """Test the percent is relative to last week."""
        spotlight = query([
            tx(amount="150", category="Food", when=TODAY - timedelta(days=1)),
            tx(amount="100", category="Food", when=TODAY - timedelta(days=10)),
        ]).category_spotlight()
        assert spotlight.amount == Decimal("50")
        assert spotlight.percent == pytest.approx(50.0)

    def test_drop_to_zero(self):
        """Test a category with no spend this week is a -100% change."""
        spotlight = query([
            tx(amount="10", category="Food", when=TODAY - timedelta(days=1)),
            tx(amount="200", category="Bars", when=TODAY - timedelta(days=10)),
        ]).category_spotlight()
        assert spotlight.category == "Bars"
        assert spotlight.amount == Decimal("-200")
        assert spotlight.percent == -100.0
        assert spotlight.is_increase is False

    def test_today_is_outside_this_week(self):
        """Test the window is half-open and excludes today."""
        spotlight = query([tx(amount="500", category="Food", when=TODAY)]).category_spotlight()
        assert spotlight.has_change is False


class TestSpendingHeatmap:
    """Tests for the monthly heatmap."""

    def test_month_starting_sunday_has_no_padding(self):
        """Test December 2024 starts on a Sunday."""
        heatmap = query([]).spending_heatmap()
        assert heatmap.month_name == "December"
        assert len(heatmap.days) == 31
        assert heatmap.days[0].day == 1

    def test_padding_to_weekday(self):
        """Test November 2024 (starts Friday) gets five blank cells."""
        heatmap = query([], today=date(2024, 11, 20)).spending_heatmap()
        assert len(heatmap.days) == 35
        assert [d.day for d in heatmap.days[:6]] == [0, 0, 0, 0, 0, 1]
        assert heatmap.days[0].has_data is False

    def test_without_padding(self):
        """Test padding can be turned off."""
        heatmap = query([], today=date(2024, 11, 20)).spending_heatmap(pad_to_weekday=False)
        assert len(heatmap.days) == 30

    def test_daily_totals_and_max(self):
        """Test expenses are summed per day."""
        heatmap = query([
            tx(amount="10", when=date(2024, 12, 3)),
            tx(amount="15", when=date(2024, 12, 3)),
            tx(amount="5", when=date(2024, 12, 4)),
            tx("income", "999", "Salary", date(2024, 12, 3)),
        ]).spending_heatmap()
        assert heatmap.days[2].amount == Decimal("25")
        assert heatmap.max_spend == Decimal("25")


class TestLevelProgress:
    """Tests for the level progress bar."""

    def test_first_level(self):
        """Test 150 of 300 XP is halfway."""
        progress = query([], UserStats(xp=150)).level_progress()
        assert progress.level == 1
        assert progress.next_level_xp == 300
        assert progress.xp_in_level == 150
        assert progress.xp_needed == 300
        assert progress.percentage == pytest.approx(50.0)

    def test_phase(self):
        """Test the progress names the level's phase and its levels."""
        first = query([], UserStats(xp=150)).level_progress()
        assert first.phase == "Foundations"
        assert first.phase_number == 1
        assert first.phase_levels == [1, 2, 3, 4, 5]

        top = query([], UserStats(xp=60000, level=20, level_title="Legend")).level_progress()
        assert top.phase == "Freedom"
        assert top.phase_number == 4
        assert top.phase_levels == [16, 17, 18, 19, 20]

    def test_top_level_is_full(self):
        """Test the last level shows a full bar."""
        progress = query([], UserStats(xp=60000, level=20, level_title="Legend")).level_progress()
        assert progress.percentage == 100.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
