"""
Static challenge catalog and level table.

Both tables are process-wide constants. Catalog order matters: it is the
order the evaluation pass walks and the order the unlock queue picks the
next locked challenge.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from ecobudget.models.gamification import ChallengeDef, ChallengeStatus, LevelDef
from ecobudget.models.ledger import ZERO, Transaction, TransactionType, UserStats


DINING_CATEGORIES = frozenset({"food & dining", "restaurants", "dining", "fast food"})


def _expense_total(transactions: list[Transaction], start: date, end: date, end_inclusive: bool) -> Decimal:
    return sum(
        (
            t.amount for t in transactions
            if t.type == TransactionType.EXPENSE
            and t.date >= start
            and (t.date <= end if end_inclusive else t.date < end)
        ),
        ZERO,
    )


def _no_eat_out_week(stats: UserStats, transactions: list[Transaction], today: date) -> bool:
    week_start = today - timedelta(days=7)
    # requires at least one transaction inside the window
    if not any(t.date >= week_start for t in transactions):
        return False
    return not any(
        t.type == TransactionType.EXPENSE
        and t.date >= week_start
        and t.category.lower() in DINING_CATEGORIES
        for t in transactions
    )


def _reduce_expenses(stats: UserStats, transactions: list[Transaction], today: date) -> bool:
    one_week_ago = today - timedelta(days=7)
    two_weeks_ago = today - timedelta(days=14)
    this_week = _expense_total(transactions, one_week_ago, today, end_inclusive=True)
    last_week = _expense_total(transactions, two_weeks_ago, one_week_ago, end_inclusive=False)
    # last week must have spent more than 50
    return last_week > 50 and (last_week - this_week) >= 20


def _savings_starter(stats: UserStats, transactions: list[Transaction], today: date) -> bool:
    return stats.total_savings >= 100


def _no_spend_weekend(stats: UserStats, transactions: list[Transaction], today: date) -> bool:
    # Most recent fully passed weekend; on a Sunday that is last week's
    days_since_sunday = (today.weekday() + 1) % 7
    last_sunday = today - timedelta(days=days_since_sunday or 7)
    last_saturday = last_sunday - timedelta(days=1)

    weekend_spend = sum(
        (
            t.amount for t in transactions
            if t.type == TransactionType.EXPENSE and t.date in (last_saturday, last_sunday)
        ),
        ZERO,
    )
    has_history = any(t.date < last_saturday for t in transactions)
    return has_history and weekend_spend == 0


def _has_income(stats: UserStats, transactions: list[Transaction], today: date) -> bool:
    return any(t.type == TransactionType.INCOME for t in transactions)


def _goal_setter(stats: UserStats, transactions: list[Transaction], today: date) -> bool:
    return len(stats.savings_goals) >= 1


def _budget_master(stats: UserStats, transactions: list[Transaction], today: date) -> bool:
    return stats.monthly_expenses >= 500


CHALLENGES: tuple[ChallengeDef, ...] = (
    ChallengeDef(
        id="c1",
        title="No Eat Out Week",
        description="Spend $0 on Dining/Restaurants in the last 7 days.",
        icon="restaurant_menu",
        xp_reward=150,
        criteria=_no_eat_out_week,
    ),
    ChallengeDef(
        id="c2",
        title="Reduce Expenses",
        description="Spend $20 less this week compared to last week.",
        icon="trending_down",
        xp_reward=100,
        criteria=_reduce_expenses,
    ),
    ChallengeDef(
        id="c3",
        title="Savings Starter",
        description="Reach $100 in total savings to unlock your potential.",
        icon="savings",
        xp_reward=200,
        criteria=_savings_starter,
    ),
    ChallengeDef(
        id="c4",
        title="No Spend Weekend",
        description="Spend nothing on the most recent Saturday & Sunday.",
        icon="weekend",
        xp_reward=300,
        criteria=_no_spend_weekend,
    ),
    ChallengeDef(
        id="c8",
        title="First Harvest",
        description="Record your first income transaction to start the flow.",
        icon="monetization_on",
        xp_reward=200,
        criteria=_has_income,
    ),
    # Initially locked
    ChallengeDef(
        id="c5",
        title="Goal Setter",
        description="Create at least 1 savings goal to visualize your dreams.",
        icon="flag",
        xp_reward=150,
        criteria=_goal_setter,
    ),
    ChallengeDef(
        id="c6",
        title="Budget Master",
        description="Log over $500 in monthly expenses to track high flow.",
        icon="account_balance_wallet",
        xp_reward=250,
        criteria=_budget_master,
    ),
    ChallengeDef(
        id="c7",
        title="Income Stream",
        description="Log at least one income transaction.",
        icon="payments",
        xp_reward=200,
        criteria=_has_income,
    ),
)

INITIAL_LOCKED = frozenset({"c5", "c6", "c7"})

_CHALLENGES_BY_ID = {c.id: c for c in CHALLENGES}


LEVELS: tuple[LevelDef, ...] = (
    # Phase 1: Foundations
    LevelDef(level=1, name="Novice", min_xp=0, artifact="Coin", artifact_icon="monetization_on", phase="Foundations"),
    LevelDef(level=2, name="Learner", min_xp=300, artifact="Wallet", artifact_icon="account_balance_wallet", phase="Foundations"),
    LevelDef(level=3, name="Apprentice", min_xp=750, artifact="Piggy Bank", artifact_icon="savings", phase="Foundations"),
    LevelDef(level=4, name="Explorer", min_xp=1300, artifact="Ledger", artifact_icon="receipt_long", phase="Foundations"),
    LevelDef(level=5, name="Saver", min_xp=2000, artifact="Balance", artifact_icon="balance", phase="Foundations"),
    # Phase 2: Growth
    LevelDef(level=6, name="Planner", min_xp=2800, artifact="Budget", artifact_icon="pie_chart", phase="Growth"),
    LevelDef(level=7, name="Keeper", min_xp=3800, artifact="Plan", artifact_icon="assignment_turned_in", phase="Growth"),
    LevelDef(level=8, name="Builder", min_xp=5000, artifact="Chart", artifact_icon="monitoring", phase="Growth"),
    LevelDef(level=9, name="Strategist", min_xp=6400, artifact="Streak", artifact_icon="local_fire_department", phase="Growth"),
    LevelDef(level=10, name="Analyst", min_xp=8000, artifact="Goal", artifact_icon="flag", phase="Growth"),
    # Phase 3: Wealth Building
    LevelDef(level=11, name="Controller", min_xp=9800, artifact="Vault", artifact_icon="lock", phase="Wealth Building"),
    LevelDef(level=12, name="Optimizer", min_xp=11800, artifact="Key", artifact_icon="vpn_key", phase="Wealth Building"),
    LevelDef(level=13, name="Specialist", min_xp=14000, artifact="Crown", artifact_icon="emoji_events", phase="Wealth Building"),
    LevelDef(level=14, name="Expert", min_xp=16500, artifact="Gem", artifact_icon="diamond", phase="Wealth Building"),
    LevelDef(level=15, name="Master", min_xp=19500, artifact="Treasure", artifact_icon="inventory_2", phase="Wealth Building"),
    # Phase 4: Freedom
    LevelDef(level=16, name="Guru", min_xp=23000, artifact="Path", artifact_icon="alt_route", phase="Freedom"),
    LevelDef(level=17, name="Commander", min_xp=27000, artifact="Bridge", artifact_icon="architecture", phase="Freedom"),
    LevelDef(level=18, name="Visionary", min_xp=31500, artifact="Horizon", artifact_icon="wb_twilight", phase="Freedom"),
    LevelDef(level=19, name="Architect", min_xp=36500, artifact="Estate", artifact_icon="domain", phase="Freedom"),
    LevelDef(level=20, name="Legend", min_xp=42000, artifact="Legacy", artifact_icon="auto_awesome", phase="Freedom"),
)

PHASES = ("Foundations", "Growth", "Wealth Building", "Freedom")


def get_challenge(challenge_id: str) -> Optional[ChallengeDef]:
    return _CHALLENGES_BY_ID.get(challenge_id)


def initial_status(challenge_id: str) -> ChallengeStatus:
    return ChallengeStatus.LOCKED if challenge_id in INITIAL_LOCKED else ChallengeStatus.AVAILABLE


def calculate_level_data(xp: int) -> LevelDef:
    """
    Highest level whose min_xp <= xp.

    Ties go to the highest qualifying level, so xp exactly at a threshold
    is already that level.
    """
    for level in reversed(LEVELS):
        if xp >= level.min_xp:
            return level
    return LEVELS[0]


def get_level(level: int) -> Optional[LevelDef]:
    return next((entry for entry in LEVELS if entry.level == level), None)


def next_level_xp(level: int) -> int:
    """XP threshold of the next level; past the top, level * 1000."""
    nxt = get_level(level + 1)
    return nxt.min_xp if nxt else level * 1000


def levels_in_phase(phase: str) -> list[LevelDef]:
    return [entry for entry in LEVELS if entry.phase == phase]
