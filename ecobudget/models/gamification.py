"""
Gamification Models

Challenge definitions and their per-user state, plus the level table rows.
Definitions are static; only ChallengeState is persisted.
"""

from datetime import date
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ecobudget.models.ledger import Transaction, UserStats


# (stats, transactions, today) -> met?
ChallengeCriteria = Callable[[UserStats, list[Transaction], date], bool]


class ChallengeStatus(str, Enum):
    """
    Challenge lifecycle.

    locked -> available -> active -> completed (terminal)
    """
    LOCKED = "locked"
    AVAILABLE = "available"
    ACTIVE = "active"
    COMPLETED = "completed"


class ChallengeState(BaseModel):
    """Persisted state of one challenge."""

    status: ChallengeStatus
    unlock_time: Optional[int] = Field(
        default=None,
        ge=0,
        description="Epoch milliseconds at which a locked challenge opens"
    )

    @property
    def is_unlock_pending(self) -> bool:
        return self.status == ChallengeStatus.LOCKED and self.unlock_time is not None


class ChallengeDef(BaseModel):
    """
    A catalog entry.

    Challenges without criteria can only be completed by a manual claim.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    icon: str
    xp_reward: int = Field(..., gt=0)
    criteria: Optional[ChallengeCriteria] = Field(default=None, exclude=True)

    @property
    def is_auto_detected(self) -> bool:
        return self.criteria is not None


class LevelDef(BaseModel):
    """One row of the level table."""
    model_config = ConfigDict(frozen=True)

    level: int = Field(..., ge=1)
    name: str
    min_xp: int = Field(..., ge=0)
    artifact: str
    artifact_icon: str
    phase: str
