"""
Insight Queries

DESIGN DECISION: Insight queries are DETERMINISTIC and READ-ONLY.
They run over a snapshot of the ledger that the caller hands in and never
touch storage or mutate anything. Every figure shown on the dashboard or
insights views comes from here, computed from the actual transactions.

"No data" is answered with zeros and empty results, never estimates.
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Optional

from dateutil.relativedelta import relativedelta

from ecobudget.gamification.catalog import PHASES, get_level, levels_in_phase, next_level_xp
from ecobudget.models.insights import (
    CategorySpotlight,
    HeatmapDay,
    LevelProgress,
    MonthSummary,
    SixMonthSummary,
    SpendingHeatmap,
)
from ecobudget.models.ledger import ZERO, Transaction, TransactionType, UserStats


CHART_MIN_SCALE = Decimal("100")


class InsightsQuery:
    """
    Read-only aggregations over a ledger snapshot.

    GUARANTEES:
    - Only uses the transactions and stats it was given
    - Never invents or estimates
    - "Today" is injectable so results are reproducible
    """

    def __init__(
        self,
        transactions: list[Transaction],
        stats: UserStats,
        today: Optional[Callable[[], date]] = None,
    ):
        self._transactions = list(transactions)
        self._stats = stats
        self._today = today or date.today

    def _in_month(self, tx: Transaction, year: int, month: int) -> bool:
        return tx.date.year == year and tx.date.month == month

    def _expenses_by_category(self, start: date, end: date) -> dict[str, Decimal]:
        """Expense totals per category for `start <= date < end`."""
        totals: dict[str, Decimal] = {}
        for tx in self._transactions:
            if tx.type == TransactionType.EXPENSE and start <= tx.date < end:
                totals[tx.category] = totals.get(tx.category, ZERO) + tx.amount
        return totals

    def monthly_income(self) -> Decimal:
        """Income dated in the current calendar month."""
        today = self._today()
        return sum(
            (
                tx.amount for tx in self._transactions
                if tx.type == TransactionType.INCOME and self._in_month(tx, today.year, today.month)
            ),
            ZERO,
        )

    def cash_flow(self) -> Decimal:
        """This month's income minus the running monthly expense total."""
        return self.monthly_income() - self._stats.monthly_expenses

    def six_month_summary(self) -> SixMonthSummary:
        """Income and expense for the current month and the five before it, oldest first."""
        first_of_month = self._today().replace(day=1)
        months = []
        for offset in range(5, -1, -1):
            start = first_of_month - relativedelta(months=offset)
            months.append(MonthSummary(
                label=start.strftime("%b"),
                year=start.year,
                month=start.month,
            ))

        buckets = {(m.year, m.month): m for m in months}
        for tx in self._transactions:
            bucket = buckets.get((tx.date.year, tx.date.month))
            if bucket is None:
                continue
            if tx.type == TransactionType.INCOME:
                bucket.income += tx.amount
            elif tx.type == TransactionType.EXPENSE:
                bucket.expense += tx.amount

        max_value = max([CHART_MIN_SCALE, *(max(m.income, m.expense) for m in months)])
        return SixMonthSummary(months=months, max_value=max_value)

    def category_spotlight(self) -> CategorySpotlight:
        """
        The expense category with the largest week-over-week swing.

        This week is [today-7, today), last week is [today-14, today-7).
        A category that dropped to zero counts as a -100% change.
        The first category to reach the largest absolute change wins ties.
        """
        today = self._today()
        one_week_ago = today - timedelta(days=7)
        two_weeks_ago = today - timedelta(days=14)

        this_week = self._expenses_by_category(one_week_ago, today)
        last_week = self._expenses_by_category(two_weeks_ago, one_week_ago)

        best = CategorySpotlight()
        for category, amount in this_week.items():
            previous = last_week.get(category, ZERO)
            diff = amount - previous
            if abs(diff) > abs(best.amount):
                percent = float(diff / previous * 100) if previous > 0 else 100.0
                best = CategorySpotlight(
                    category=category,
                    amount=diff,
                    percent=percent,
                    is_increase=diff > 0,
                )

        for category, previous in last_week.items():
            if this_week.get(category):
                continue
            diff = -previous
            if abs(diff) > abs(best.amount):
                best = CategorySpotlight(
                    category=category,
                    amount=diff,
                    percent=-100.0,
                    is_increase=False,
                )

        return best

    def spending_heatmap(self, pad_to_weekday: bool = True) -> SpendingHeatmap:
        """
        Daily expense totals for the current month.

        With `pad_to_weekday`, the list starts with blank cells so that the
        1st lands on its weekday column in a Sunday-first calendar.
        """
        today = self._today()
        days_in_month = calendar.monthrange(today.year, today.month)[1]

        daily: dict[int, Decimal] = {}
        for tx in self._transactions:
            if tx.type == TransactionType.EXPENSE and self._in_month(tx, today.year, today.month):
                daily[tx.date.day] = daily.get(tx.date.day, ZERO) + tx.amount

        cells = []
        if pad_to_weekday:
            leading = (today.replace(day=1).weekday() + 1) % 7
            cells.extend(HeatmapDay(day=0) for _ in range(leading))
        for day in range(1, days_in_month + 1):
            cells.append(HeatmapDay(day=day, amount=daily.get(day, ZERO), has_data=True))

        return SpendingHeatmap(
            month_name=today.strftime("%B"),
            days=cells,
            max_spend=max(daily.values(), default=ZERO),
        )

    def level_progress(self) -> LevelProgress:
        """Progress bar data between the current level and the next threshold."""
        level = self._stats.level or 1
        current = get_level(level) or get_level(1)
        target = next_level_xp(level)

        xp_in_level = self._stats.xp - current.min_xp
        xp_needed = target - current.min_xp
        if xp_needed <= 0:
            # past the top of the table
            percentage = 100.0
        else:
            percentage = min(100.0, max(0.0, xp_in_level / xp_needed * 100))

        return LevelProgress(
            level=level,
            level_title=self._stats.level_title,
            xp=self._stats.xp,
            xp_in_level=xp_in_level,
            xp_needed=xp_needed,
            next_level_xp=target,
            percentage=percentage,
            phase=current.phase,
            phase_number=PHASES.index(current.phase) + 1,
            phase_levels=[entry.level for entry in levels_in_phase(current.phase)],
        )
