"""
Gamification Engine

Owns the per-challenge state machine, the unlock queue and level-up
detection. XP itself lives on UserStats; the engine computes new stats and
the session writes them back through the ledger.

Lifecycle per challenge:

    locked --(unlock time passes)--> available --(accept)--> active
    active --(criteria met, or manual claim)--> completed (terminal)

Unlock queue: each completion arms the first locked challenge (catalog
order) that has no unlock time yet. Due unlocks are applied lazily whenever
state is read or mutated, and optionally by a background ticker.
"""

import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Mapping, Optional

import structlog

from ecobudget.gamification.catalog import (
    CHALLENGES,
    calculate_level_data,
    get_challenge,
    get_level,
    initial_status,
)
from ecobudget.models.gamification import ChallengeDef, ChallengeState, ChallengeStatus, LevelDef
from ecobudget.models.ledger import Transaction, UserStats


logger = structlog.get_logger("ecobudget.gamification")

DEFAULT_UNLOCK_DELAY_MS = 60_000


def epoch_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class EvaluationResult:
    """Outcome of one evaluation pass."""

    completed_ids: list[str] = field(default_factory=list)
    xp_awarded: int = 0
    scheduled_unlocks: list[str] = field(default_factory=list)
    # Only the last completion is surfaced to the user
    recently_completed: Optional[ChallengeDef] = None

    @property
    def has_changes(self) -> bool:
        return bool(self.completed_ids)


@dataclass
class ClaimResult:
    challenge: ChallengeDef
    xp_awarded: int
    scheduled_unlock: Optional[str] = None


def initial_challenge_states(
    stored: Optional[Mapping[str, ChallengeState]] = None,
) -> dict[str, ChallengeState]:
    """
    Merge stored states with catalog defaults.

    Stored entries win; catalog ids missing from storage start locked or
    available depending on the catalog. Unknown stored ids are kept.
    """
    states = dict(stored or {})
    for challenge in CHALLENGES:
        if challenge.id not in states:
            states[challenge.id] = ChallengeState(status=initial_status(challenge.id))
    return states


class GamificationEngine:
    """
    Challenge state machine plus XP and level tracking.

    All methods take and return whole snapshots; internal state is only
    replaced, never edited in place.
    """

    def __init__(
        self,
        states: Optional[Mapping[str, ChallengeState]] = None,
        current_level: int = 1,
        unlock_delay_ms: int = DEFAULT_UNLOCK_DELAY_MS,
        clock: Callable[[], int] = epoch_ms,
    ):
        self._states: dict[str, ChallengeState] = initial_challenge_states(states)
        self._previous_level = current_level or 1
        self._unlock_delay_ms = unlock_delay_ms
        self._clock = clock

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def challenges(self) -> tuple[ChallengeDef, ...]:
        return CHALLENGES

    @property
    def states(self) -> dict[str, ChallengeState]:
        """Current states with due unlocks applied."""
        self.refresh_unlocks()
        return dict(self._states)

    def snapshot(self) -> dict[str, ChallengeState]:
        """States exactly as held, without applying due unlocks."""
        return dict(self._states)

    @property
    def previous_level(self) -> int:
        return self._previous_level

    def status_of(self, challenge_id: str) -> Optional[ChallengeStatus]:
        self.refresh_unlocks()
        state = self._states.get(challenge_id)
        return state.status if state else None

    # ------------------------------------------------------------------
    # Unlock queue
    # ------------------------------------------------------------------

    def _schedule_unlock(self, states: dict[str, ChallengeState]) -> Optional[str]:
        """
        Arm the next locked challenge in catalog order.

        Mutates the working copy passed in; the caller swaps it in.
        """
        for challenge in CHALLENGES:
            state = states.get(challenge.id)
            if state and state.status == ChallengeStatus.LOCKED and state.unlock_time is None:
                states[challenge.id] = ChallengeState(
                    status=ChallengeStatus.LOCKED,
                    unlock_time=self._clock() + self._unlock_delay_ms,
                )
                return challenge.id
        return None

    def refresh_unlocks(self, now: Optional[int] = None) -> list[str]:
        """Flip every locked challenge whose unlock time has passed."""
        now = self._clock() if now is None else now
        due = [
            cid for cid, state in self._states.items()
            if state.status == ChallengeStatus.LOCKED
            and state.unlock_time is not None
            and now >= state.unlock_time
        ]
        if not due:
            return []

        states = dict(self._states)
        for cid in due:
            states[cid] = ChallengeState(status=ChallengeStatus.AVAILABLE)
        self._states = states
        logger.info("challenges_unlocked", challenge_ids=due)
        return due

    def pending_unlock(self) -> Optional[tuple[str, int]]:
        """The armed challenge and its unlock time, if any."""
        for cid, state in self._states.items():
            if state.is_unlock_pending:
                return cid, state.unlock_time
        return None

    # ------------------------------------------------------------------
    # Evaluation & user actions
    # ------------------------------------------------------------------

    def evaluate(
        self,
        stats: UserStats,
        transactions: list[Transaction],
        today: Optional[date] = None,
    ) -> EvaluationResult:
        """
        Complete every active challenge whose criteria now hold.

        Completed challenges are never looked at again, so repeating the
        pass is free of side effects.
        """
        today = today or date.today()
        self.refresh_unlocks()
        result = EvaluationResult()
        states = dict(self._states)

        for challenge in CHALLENGES:
            state = states.get(challenge.id)
            if state is None or state.status != ChallengeStatus.ACTIVE or challenge.criteria is None:
                continue
            if not challenge.criteria(stats, transactions, today):
                continue

            states[challenge.id] = ChallengeState(status=ChallengeStatus.COMPLETED)
            result.completed_ids.append(challenge.id)
            result.xp_awarded += challenge.xp_reward
            result.recently_completed = challenge
            scheduled = self._schedule_unlock(states)
            if scheduled:
                result.scheduled_unlocks.append(scheduled)

        if result.has_changes:
            self._states = states
        return result

    def accept_challenge(self, challenge_id: str) -> bool:
        """
        Move an available challenge to active.

        Only `available` challenges can be accepted. Anything else
        (locked, active, completed, unknown) is a no-op returning False.
        """
        self.refresh_unlocks()
        state = self._states.get(challenge_id)
        if state is None or state.status != ChallengeStatus.AVAILABLE:
            return False
        self._states = {**self._states, challenge_id: ChallengeState(status=ChallengeStatus.ACTIVE)}
        return True

    def claim_challenge_reward(self, challenge_id: str) -> Optional[ClaimResult]:
        """
        Manual completion path.

        Completes the challenge whatever its current status or criteria,
        arms the unlock queue and reports the XP to award. Unknown ids
        return None.
        """
        challenge = get_challenge(challenge_id)
        if challenge is None:
            return None

        self.refresh_unlocks()
        states = {**self._states, challenge_id: ChallengeState(status=ChallengeStatus.COMPLETED)}
        scheduled = self._schedule_unlock(states)
        self._states = states
        return ClaimResult(challenge=challenge, xp_awarded=challenge.xp_reward, scheduled_unlock=scheduled)

    # ------------------------------------------------------------------
    # XP & levels
    # ------------------------------------------------------------------

    def award_xp(self, stats: UserStats, amount: int) -> UserStats:
        """New stats with the XP added and the level recomputed."""
        if amount <= 0:
            return stats
        xp = (stats.xp or 0) + amount
        level = calculate_level_data(xp)
        return stats.model_copy(update={
            "xp": xp,
            "level": level.level,
            "level_title": level.name,
        })

    def observe_level(self, level: int) -> Optional[LevelDef]:
        """
        Level-up detection.

        Returns the new LevelDef when the level strictly increased since the
        last observation. Decreases (e.g. after a reset) are absorbed
        silently. The tracked level always follows the observed one.
        """
        previous = self._previous_level
        self._previous_level = level
        if level > previous:
            return get_level(level)
        return None

    def reset(self) -> None:
        self._states = initial_challenge_states()
        self._previous_level = 1
