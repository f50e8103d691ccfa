"""Result models for dashboard insight queries."""

from decimal import Decimal

from pydantic import BaseModel, Field


class MonthSummary(BaseModel):
    """Income and expense totals for one calendar month."""

    label: str
    year: int
    month: int = Field(..., ge=1, le=12)
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class SixMonthSummary(BaseModel):
    months: list[MonthSummary]
    max_value: Decimal = Field(
        ...,
        description="Largest monthly income/expense, never below 100 (chart scale)"
    )


class CategorySpotlight(BaseModel):
    """The category whose weekly spend moved the most."""

    category: str = ""
    amount: Decimal = Decimal("0")
    percent: float = 0.0
    is_increase: bool = False

    @property
    def has_change(self) -> bool:
        return bool(self.category)


class HeatmapDay(BaseModel):
    """One calendar cell; `day` 0 marks leading padding before the 1st."""

    day: int = Field(..., ge=0, le=31)
    amount: Decimal = Decimal("0")
    has_data: bool = False


class SpendingHeatmap(BaseModel):
    month_name: str
    days: list[HeatmapDay]
    max_spend: Decimal = Decimal("0")


class LevelProgress(BaseModel):
    """Where the user sits between the current and next level."""

    level: int
    level_title: str
    xp: int
    xp_in_level: int
    xp_needed: int
    next_level_xp: int
    percentage: float = Field(..., ge=0.0, le=100.0)
    phase: str = ""
    phase_number: int = Field(default=1, ge=1)
    # level numbers that make up the current phase
    phase_levels: list[int] = Field(default_factory=list)
